#!/usr/bin/env python
# -*- coding: UTF-8 -*-

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
"""This module contains the primary logic of the tool."""
import logging
import sys
import traceback

from aws_saml_keyman import aws, output
from aws_saml_keyman.config import Config
from aws_saml_keyman.metadata import __desc__, __version__
from aws_saml_keyman.pipeline import Pipeline
from aws_saml_keyman.saml_response import (MissingSamlResponse,
                                           extract_assertion)


LOG = logging.getLogger(__name__)


class Keyman:
    """Main class for the tool."""

    def __init__(self, argv):
        self.log = LOG
        self.log.info('{} 🔐 v{}'.format(__desc__, __version__))
        self.config = Config(argv)
        try:
            self.config.get_config()
        except (ValueError, IOError) as err:
            self.log.fatal(err)
            sys.exit(1)
        if self.config.debug:
            logging.getLogger().setLevel(logging.DEBUG)
            self.log.setLevel(logging.DEBUG)

    def main(self):
        """Execute primary logic path."""
        try:
            assertion = self.read_assertion()
            if assertion is None:
                return 1

            pipeline = Pipeline(self.client(), self.output())
            try:
                future = pipeline.submit({'SAMLResponse': [assertion]})
                ok = future.result()
            finally:
                pipeline.close()

            if not ok:
                self.log.fatal('No credentials were written 🛑')
                return 2
            self.log.info('All done! 👍')
            return 0

        except KeyboardInterrupt:
            # Allow users to exit cleanly at any time.
            print('')
            self.log.info('Exiting after keyboard interrupt. 🛑')
            return 1

        except Exception as err:
            msg = '😬 Unhandled exception: {}'.format(err)
            self.log.fatal(msg)
            self.log.debug(traceback.format_exc())
            return 5

    def read_input(self):
        """Read the captured login from a file or stdin."""
        if self.config.input == '-':
            self.log.info('Reading SAMLResponse from stdin')
            return sys.stdin.read()
        with open(self.config.input, 'r', encoding='utf-8') as infile:
            return infile.read()

    def read_assertion(self):
        """Return the assertion string, or None if there isn't one."""
        try:
            text = self.read_input()
        except IOError as err:
            self.log.fatal('Unable to read {}: {}'.format(
                self.config.input, err))
            return None
        try:
            return extract_assertion(text, self.config.input_format)
        except MissingSamlResponse as err:
            self.log.fatal(err)
            return None

    def client(self):
        """Build the STS client from the config."""
        return aws.FederationClient(endpoint=self.config.endpoint,
                                    timeout=self.config.timeout)

    def output(self):
        """Pick where the credentials go."""
        if self.config.screen:
            return output.Screen()
        return output.CredentialsFile(self.config.credential_path)
