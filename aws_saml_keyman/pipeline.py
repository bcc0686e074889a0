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
"""SAMLResponse to credentials file, one run per captured login."""
import concurrent.futures
import enum
import logging
import traceback

from aws_saml_keyman import aws
from aws_saml_keyman.aws_saml import DecodeError, ParseError, SamlAssertion
from aws_saml_keyman.output import DeliveryError
from aws_saml_keyman.saml_response import (MissingSamlResponse,
                                           assertion_from_form)

LOG = logging.getLogger(__name__)

OUTPUT_NAME = 'credentials'


class State(enum.Enum):
    IDLE = 'idle'
    DECODING = 'decoding'
    EXTRACTING = 'extracting'
    EXCHANGING = 'exchanging'
    FORMATTING = 'formatting'
    DONE = 'done'
    FAILED = 'failed'


class Run(object):
    """A single pass from assertion to delivered credentials document.

    Stages run strictly in order and are never retried; the first failure
    ends the run without handing anything to the output.
    """

    def __init__(self, assertion, client, output):
        self.assertion = assertion
        self.client = client
        self.output = output
        self.state = State.IDLE
        self.document = None

    def _enter(self, state):
        LOG.debug('Run {} -> {}'.format(self.state.value, state.value))
        self.state = state

    def execute(self):
        """Walk the run through its stages.

        Returns: True when the credentials were delivered
        """
        try:
            self._enter(State.DECODING)
            saml = SamlAssertion(self.assertion)
            saml.decode()

            self._enter(State.EXTRACTING)
            grants = saml.roles()
            duration = saml.session_duration()
            if not grants:
                LOG.warning('No AWS roles found in the SAML assertion')

            self._enter(State.EXCHANGING)
            results = self.client.exchange_all(grants, duration,
                                               self.assertion)

            self._enter(State.FORMATTING)
            self.document = aws.format_document(results)
        except DecodeError as err:
            return self._fail('Unable to decode SAML assertion: {}', err)
        except ParseError as err:
            return self._fail('Unable to read roles from assertion: {}', err)
        except aws.ExchangeError as err:
            return self._fail('Unable to assume role {}', err)
        except Exception as err:
            LOG.debug(traceback.format_exc())
            return self._fail('😬 Unhandled exception: {}', err)

        self._enter(State.DONE)
        try:
            self.output.deliver(self.document, OUTPUT_NAME)
        except DeliveryError as err:
            LOG.error('Credentials were not saved: {}'.format(err))
            return False
        LOG.info('Saved credentials for {} role(s) 🔑'.format(len(results)))
        return True

    def _fail(self, msg, err):
        self._enter(State.FAILED)
        LOG.error(msg.format(err))
        return False


class Pipeline(object):
    """Run captured SAML logins through to credentials.

    args:
        client: aws.FederationClient used for every run
        output: Anything with a deliver(document, name) method
    """

    def __init__(self, client, output, max_runs=4):
        self.client = client
        self.output = output
        self.executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_runs)

    def run(self, assertion):
        """Process one assertion and wait for it. Returns True on success."""
        return Run(assertion, self.client, self.output).execute()

    def _run_form(self, form_data):
        try:
            assertion = assertion_from_form(form_data)
        except MissingSamlResponse as err:
            LOG.error(err)
            return False
        return self.run(assertion)

    @staticmethod
    def _log_crash(future):
        if not future.cancelled() and future.exception() is not None:
            LOG.error('Run crashed: {}'.format(future.exception()))

    def submit(self, form_data):
        """Kick off a run for an intercepted form post without blocking.

        Args:
        form_data: Dict of field name to list of values

        Returns: concurrent.futures.Future resolving to True or False
        """
        future = self.executor.submit(self._run_form, form_data)
        future.add_done_callback(self._log_crash)
        return future

    def close(self):
        self.executor.shutdown(wait=True)
