import unittest

from aws_saml_keyman import metadata


class MetadataTest(unittest.TestCase):

    def test_version(self):
        assert metadata.__version__

    def test_desc(self):
        assert metadata.__desc__
