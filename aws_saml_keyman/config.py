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
"""
Config module is a config object that handles passed-in args and an optional
local config file.
"""
import argparse
import logging
import os

import yaml

from aws_saml_keyman.aws import STS_ENDPOINT
from aws_saml_keyman.metadata import __version__
from aws_saml_keyman.saml_response import INPUT_FORMATS

LOG = logging.getLogger(__name__)

DEFAULT_CONFIG = '~/.config/aws_saml_keyman.yml'

# Values used when neither the command line nor a config file set them.
DEFAULTS = {
    'input': '-',
    'input_format': 'auto',
    'credential_path': '~/.aws',
    'endpoint': STS_ENDPOINT,
    'timeout': 30,
    'screen': False,
    'debug': False,
}


class Config:
    """Config class for all tool configuration settings."""

    def __init__(self, argv):
        self.argv = argv
        self.config = None
        self.writepath = None
        self.input = None
        self.input_format = None
        self.credential_path = None
        self.endpoint = None
        self.timeout = None
        self.screen = None
        self.debug = None

    def validate(self):
        """Ensure the settings make sense before continuing."""
        if self.input_format not in INPUT_FORMATS:
            raise ValueError(
                "The parameter input_format must be one of {}".format(
                    ', '.join(INPUT_FORMATS)))
        if not str(self.endpoint).startswith('https://'):
            raise ValueError("The parameter endpoint must be an https:// URL")
        try:
            timeout = float(self.timeout)
        except (TypeError, ValueError):
            timeout = 0
        if timeout <= 0:
            raise ValueError("The parameter timeout must be a positive number")
        self.timeout = timeout

    def get_config(self):
        """Get the config and set everything up based on the args and/or local
        config file.
        """
        config_file = os.path.expanduser(DEFAULT_CONFIG)
        self.parse_args()
        if self.config:
            self.parse_config(self.config)
        elif os.path.isfile(config_file):
            # Nothing specified; pick up the default file if there is one
            self.parse_config(config_file)
        self.apply_defaults()
        self.validate()
        if self.writepath:
            self.write_config()

    def apply_defaults(self):
        """Fill in anything still unset."""
        for key, value in DEFAULTS.items():
            if getattr(self, key) is None:
                setattr(self, key, value)

    @staticmethod
    def usage_epilog():
        """Epilog string for argparse."""
        epilog = (
            '** Input **\n'
            'Keyman reads the SAMLResponse your identity provider posts to\n'
            'https://signin.aws.amazon.com/saml. Any of these work:\n'
            '\n'
            '\tthe raw base64 SAMLResponse value\n'
            '\tthe urlencoded form body (SAMLResponse=...&RelayState=...)\n'
            '\tthe HTML page with the auto-submitting SAML form\n'
            '\n'
            '** Configuration File **\n'
            'AWS SAML Keyman can use a config file to pre-configure most of\n'
            'the settings. The default location is\n'
            '\'~/.config/aws_saml_keyman.yml\'. Use -w to write the current\n'
            'settings out to a file.\n')
        return epilog

    def parse_args(self):
        """Parse the CLI options onto this object."""
        arg_parser = argparse.ArgumentParser(
            prog=self.argv[0],
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self.usage_epilog(),
            description="AWS SAML Keyman v{}".format(__version__))
        # Remove the default optional arguments section that always shows up.
        arg_parser._action_groups.pop()

        optional_args = arg_parser.add_argument_group('Optional arguments')
        self.optional_args(optional_args)

        config = arg_parser.parse_args(args=self.argv[1:])
        config_dict = vars(config)

        for key in config_dict:
            setattr(self, key, config_dict[key])

    @staticmethod
    def optional_args(optional_args):
        """Define the always-optional arguments."""
        optional_args.add_argument('-i', '--input', type=str,
                                   help=(
                                       'File holding the captured '
                                       'SAMLResponse; - reads stdin.'
                                   ))
        optional_args.add_argument('-f', '--input_format', type=str,
                                   help='How the input is encoded.',
                                   choices=INPUT_FORMATS)
        optional_args.add_argument('-p', '--credential_path', type=str,
                                   help=(
                                       'Directory to write the AWS '
                                       'credentials file to.'
                                   ))
        optional_args.add_argument('-e', '--endpoint', type=str,
                                   help='STS endpoint to call.')
        optional_args.add_argument('-t', '--timeout', type=float,
                                   help='Seconds to wait for each STS call.')
        optional_args.add_argument('-s', '--screen', action='store_true',
                                   help=(
                                       'Print the retrieved keys only and do '
                                       'not write to the AWS credentials '
                                       'file.'
                                   ),
                                   default=None)
        optional_args.add_argument('-D', '--debug', action='store_true',
                                   help=(
                                       'Enable DEBUG logging - note, this is '
                                       'extremely verbose and exposes '
                                       'credentials on the screen so be '
                                       'careful here!'
                                   ),
                                   default=None)
        optional_args.add_argument('-c', '--config', type=str,
                                   help='Config File path')
        optional_args.add_argument('-w', '--writepath', type=str,
                                   help='Full config file path to write to')
        optional_args.add_argument('-V', '--version', action='version',
                                   version=__version__)

    @staticmethod
    def read_yaml(filename, raise_on_error=False):
        """Read a YAML file and optionally raise if anything goes wrong."""
        config = {}
        try:
            if os.path.isfile(filename):
                with open(filename, 'r') as infile:
                    config = yaml.safe_load(infile) or {}
                LOG.debug("YAML loaded config: {}".format(config))
            else:
                if raise_on_error:
                    raise IOError("File not found: {}".format(filename))
        except (yaml.parser.ParserError, yaml.scanner.ScannerError):
            LOG.error('Error parsing config file; invalid YAML.')
            if raise_on_error:
                raise
        return config

    def parse_config(self, filename):
        """Parse a configuration file and set the variables from it."""
        config = self.read_yaml(filename, raise_on_error=True)

        for key, value in config.items():
            if key not in DEFAULTS:
                LOG.warning("Ignoring unknown config setting '{}'".format(key))
                continue
            if getattr(self, key) is None:  # Only overwrite None not args
                setattr(self, key, value)

    def write_config(self):
        """Write the current settings out so later runs can reuse them."""
        file_path = os.path.expanduser(self.writepath)
        config_out = self.clean_config_for_write(dict(vars(self)))

        LOG.debug("YAML being saved: {}".format(config_out))

        file_folder = os.path.dirname(os.path.abspath(file_path))
        if not os.path.exists(file_folder):
            LOG.debug("Creating missing config file folder : {}".format(
                file_folder))
            os.makedirs(file_folder)

        with open(file_path, 'w') as outfile:
            yaml.safe_dump(config_out, outfile, default_flow_style=False)
        LOG.info('Config written to {}'.format(file_path))

    @staticmethod
    def clean_config_for_write(config):
        """Keep only the settings worth saving to a config file."""
        return {key: config[key] for key in DEFAULTS
                if key not in ('input', 'debug')}
