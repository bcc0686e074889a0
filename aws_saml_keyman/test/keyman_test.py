# -*- coding: UTF-8 -*-
import base64
import io
import logging
import unittest
from unittest import mock

from aws_saml_keyman import output
from aws_saml_keyman.keyman import Keyman

ASSERTION = base64.b64encode(
    b'<Attribute Name="https://aws.amazon.com/SAML/Attributes/Role">'
    b'<AttributeValue>arn:aws:iam::111:role/A,'
    b'arn:aws:iam::111:saml-provider/P</AttributeValue></Attribute>').decode()


class KeymanTest(unittest.TestCase):

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_init_blank_args(self, _config_mock):
        keyman = Keyman([''])

        assert isinstance(keyman, Keyman)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_init_use_debug(self, config_mock):
        config_mock().debug = True
        level = logging.getLogger().level
        keyman = Keyman(['foo', '-D'])

        log_level = logging.getLevelName(keyman.log.getEffectiveLevel())
        logging.getLogger().setLevel(level)
        keyman.log.setLevel(logging.NOTSET)

        self.assertEqual('DEBUG', log_level)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_init_bad_config(self, config_mock):
        config_mock().get_config.side_effect = ValueError

        with self.assertRaises(SystemExit):
            Keyman([])

    @mock.patch('aws_saml_keyman.keyman.Pipeline')
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_main(self, _config_mock, pipeline_mock):
        keyman = Keyman(['foo'])
        keyman.read_assertion = mock.MagicMock(return_value=ASSERTION)
        pipeline_mock().submit().result.return_value = True

        self.assertEqual(keyman.main(), 0)

        pipeline_mock().submit.assert_called_with(
            {'SAMLResponse': [ASSERTION]})
        assert pipeline_mock().close.called

    @mock.patch('aws_saml_keyman.keyman.Pipeline')
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_main_run_failed(self, _config_mock, pipeline_mock):
        keyman = Keyman(['foo'])
        keyman.read_assertion = mock.MagicMock(return_value=ASSERTION)
        pipeline_mock().submit().result.return_value = False

        self.assertEqual(keyman.main(), 2)

    @mock.patch('aws_saml_keyman.keyman.Pipeline')
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_main_no_assertion(self, _config_mock, pipeline_mock):
        keyman = Keyman(['foo'])
        keyman.read_assertion = mock.MagicMock(return_value=None)

        self.assertEqual(keyman.main(), 1)
        self.assertFalse(pipeline_mock().submit.called)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_main_keyboard_interrupt(self, _config_mock):
        keyman = Keyman(['foo'])
        keyman.read_assertion = mock.MagicMock(side_effect=KeyboardInterrupt)

        self.assertEqual(keyman.main(), 1)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_main_unhandled_exception(self, _config_mock):
        keyman = Keyman(['foo'])
        keyman.read_assertion = mock.MagicMock(side_effect=Exception())

        self.assertEqual(keyman.main(), 5)

    @mock.patch('aws_saml_keyman.keyman.sys.stdin', io.StringIO(ASSERTION))
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_read_assertion_stdin(self, config_mock):
        keyman = Keyman(['foo'])
        keyman.config.input = '-'
        keyman.config.input_format = 'auto'

        self.assertEqual(keyman.read_assertion(), ASSERTION)

    @mock.patch('aws_saml_keyman.keyman.open')
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_read_assertion_file(self, config_mock, open_mock):
        open_mock.return_value = io.StringIO(
            'SAMLResponse={}&RelayState='.format(ASSERTION.replace(
                '+', '%2B').replace('=', '%3D')))
        keyman = Keyman(['foo'])
        keyman.config.input = 'saml.txt'
        keyman.config.input_format = 'form'

        self.assertEqual(keyman.read_assertion(), ASSERTION)
        open_mock.assert_called_with('saml.txt', 'r', encoding='utf-8')

    @mock.patch('aws_saml_keyman.keyman.open')
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_read_assertion_missing_file(self, config_mock, open_mock):
        open_mock.side_effect = IOError('nope')
        keyman = Keyman(['foo'])
        keyman.config.input = 'saml.txt'

        self.assertEqual(keyman.read_assertion(), None)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_read_assertion_without_saml_response(self, config_mock):
        keyman = Keyman(['foo'])
        keyman.read_input = mock.MagicMock(return_value='<html></html>')
        keyman.config.input_format = 'auto'

        self.assertEqual(keyman.read_assertion(), None)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_output_screen(self, config_mock):
        keyman = Keyman(['foo'])
        keyman.config.screen = True

        self.assertIsInstance(keyman.output(), output.Screen)

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_output_file(self, config_mock):
        keyman = Keyman(['foo'])
        keyman.config.screen = False
        keyman.config.credential_path = '/tmp/aws'

        writer = keyman.output()

        self.assertIsInstance(writer, output.CredentialsFile)
        self.assertEqual(writer.cred_dir, '/tmp/aws')

    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_client(self, config_mock):
        keyman = Keyman(['foo'])
        keyman.config.endpoint = 'https://sts.example.com'
        keyman.config.timeout = 7

        client = keyman.client()

        self.assertEqual(client.endpoint, 'https://sts.example.com')
        self.assertEqual(client.timeout, 7)


class KeymanEndToEndTest(unittest.TestCase):

    @mock.patch('aws_saml_keyman.aws.requests.post')
    @mock.patch('aws_saml_keyman.keyman.Config')
    def test_single_role_written_as_default(self, config_mock, post_mock):
        post_mock.return_value.ok = True
        post_mock.return_value.json.return_value = {
            'AssumeRoleWithSAMLResponse': {'AssumeRoleWithSAMLResult': {
                'AssumedRoleUser': {
                    'Arn': 'arn:aws:sts::111:assumed-role/A/user'},
                'Credentials': {'AccessKeyId': 'AKIA',
                                'SecretAccessKey': 'shh',
                                'SessionToken': 'tok'}}}}
        keyman = Keyman(['foo'])
        keyman.read_assertion = mock.MagicMock(return_value=ASSERTION)
        keyman.config.endpoint = 'https://sts.amazonaws.com'
        keyman.config.timeout = 30
        writer = mock.MagicMock(name='Output')
        keyman.output = mock.MagicMock(return_value=writer)

        self.assertEqual(keyman.main(), 0)

        writer.deliver.assert_called_once_with(
            '[default]\n'
            'aws_access_key_id=AKIA\n'
            'aws_secret_access_key=shh\n'
            'aws_session_token=tok',
            'credentials')
