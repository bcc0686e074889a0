# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# Copyright 2018 Nextdoor.com, Inc
# Copyright 2018 Nathan V
"""Where a finished credentials document ends up."""
import logging
import os
import tempfile

LOG = logging.getLogger(__name__)


class DeliveryError(Exception):
    """Raised when the credentials document cannot be saved."""


class CredentialsFile(object):
    """AWS shared credentials file writer.

    The document replaces whatever file of the same name is already in the
    credentials directory.
    """

    def __init__(self, credential_path='~/.aws'):
        self.cred_dir = os.path.expanduser(credential_path)

    def deliver(self, document, name):
        """Write the document to <credential_path>/<name>.

        args:
            document: Formatted credentials text
            name: File name to write under the credentials directory
        """
        filename = os.path.join(self.cred_dir, name)
        try:
            if not os.path.exists(self.cred_dir):
                LOG.info('Creating missing AWS Credentials dir {} 📁'.format(
                    self.cred_dir))
                os.makedirs(self.cred_dir)
            # The target is only ever replaced whole
            fd, tmpname = tempfile.mkstemp(dir=self.cred_dir,
                                           prefix='.{}.'.format(name))
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as credfile:
                    os.chmod(tmpname, 0o600)
                    credfile.write(document)
                os.replace(tmpname, filename)
            except OSError:
                os.unlink(tmpname)
                raise
        except OSError as err:
            raise DeliveryError('Unable to write {}: {}'.format(filename, err))

        LOG.info('Wrote credentials to {file} 💾'.format(file=filename))


class Screen(object):
    """Print the credentials instead of saving them."""

    @staticmethod
    def deliver(document, name):
        LOG.info('AWS Credentials ({}): \n\n\n{}\n\n'.format(name, document))
