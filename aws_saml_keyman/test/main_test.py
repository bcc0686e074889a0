import logging
import unittest
from unittest import mock

import aws_saml_keyman.__main__


class MainTest(unittest.TestCase):

    @mock.patch('aws_saml_keyman.__main__.setup_logging')
    @mock.patch('aws_saml_keyman.__main__.Keyman')
    def test_entry_point_func(self, keyman_mock, _logging_mock):
        keyman_mock.return_value.main.return_value = 0
        with self.assertRaises(SystemExit) as err:
            aws_saml_keyman.__main__.entry_point()

        self.assertEqual(err.exception.code, 0)
        keyman_mock.assert_has_calls([
            mock.call(mock.ANY),
            mock.call().main(),
        ])

    @mock.patch('aws_saml_keyman.__main__.logging.getLogger')
    def test_setup_logging(self, logger_mock):
        aws_saml_keyman.__main__.setup_logging()

        logger_mock.return_value.setLevel.assert_called_with(logging.INFO)
        assert logger_mock.return_value.addHandler.called
