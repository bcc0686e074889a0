# -*- coding: utf-8 -*-
#
# Credits: Portions of this code were copied/modified from
# https://github.com/ThoughtWorksInc/aws_role_credentials
#
# Copyright (c) 2015, Peter Gillard-Moss
# All rights reserved.

# Permission to use, copy, modify, and/or distribute this software for any
# purpose with or without fee is hereby granted, provided that the above
# copyright notice and this permission notice appear in all copies.

# THE SOFTWARE IS PROVIDED "AS IS" AND THE AUTHOR DISCLAIMS ALL WARRANTIES
# WITH REGARD TO THIS SOFTWARE INCLUDING ALL IMPLIED WARRANTIES OF
# MERCHANTABILITY AND FITNESS. IN NO EVENT SHALL THE AUTHOR BE LIABLE FOR
# ANY SPECIAL, DIRECT, INDIRECT, OR CONSEQUENTIAL DAMAGES OR ANY DAMAGES
# WHATSOEVER RESULTING FROM LOSS OF USE, DATA OR PROFITS, WHETHER IN AN
# ACTION OF CONTRACT, NEGLIGENCE OR OTHER TORTIOUS ACTION, ARISING OUT OF
# OR IN CONNECTION WITH THE USE OR PERFORMANCE OF THIS SOFTWARE.
"""AWS SAML assertion decoder and role parser."""
import base64
import binascii
import collections
import logging
import re
import urllib.parse
import xml.etree.ElementTree as ET

LOG = logging.getLogger(__name__)

ROLE_ATTRIBUTE = 'https://aws.amazon.com/SAML/Attributes/Role'
DURATION_ATTRIBUTE = 'https://aws.amazon.com/SAML/Attributes/SessionDuration'

BAD_ESCAPE = re.compile(rb'%(?![0-9A-Fa-f]{2})')

RoleGrant = collections.namedtuple('RoleGrant', ['role_arn', 'principal_arn'])


class DecodeError(Exception):
    """Raised when the assertion is not base64 encoded, percent encoded XML."""


class ParseError(Exception):
    """Raised when the assertion attributes are not shaped the way AWS
    documents them.
    """


def local_name(tag):
    """Strip the '{namespace}' prefix ElementTree puts on tag names."""
    return tag.rsplit('}', 1)[-1]


class SamlAssertion:
    """Handle the AWS SAML assertion.

    args:
        assertion: The SAMLResponse value exactly as it was posted; base64
                   encoded and kept as-is for the STS call.
    """

    def __init__(self, assertion):
        self.assertion = assertion
        self.document = None

    def decode(self):
        """Reverse the transport encoding and parse the XML.

        Returns: The root ElementTree element of the assertion
        """
        if self.document is not None:
            return self.document

        try:
            raw = base64.b64decode(''.join(self.assertion.split()),
                                   validate=True)
        except (binascii.Error, ValueError) as err:
            raise DecodeError('Assertion is not valid base64: {}'.format(err))

        if BAD_ESCAPE.search(raw):
            raise DecodeError('Assertion contains a malformed % escape')

        try:
            text = urllib.parse.unquote_to_bytes(raw).decode('utf-8')
        except UnicodeDecodeError as err:
            raise DecodeError('Assertion is not UTF-8: {}'.format(err))

        try:
            self.document = ET.fromstring(text)
        except ET.ParseError as err:
            raise DecodeError('Assertion is not valid XML: {}'.format(err))

        LOG.debug('Decoded SAML assertion with root <{}>'.format(
            local_name(self.document.tag)))
        return self.document

    def attributes(self, name):
        """Return every Attribute element called name, in document order."""
        return [x for x
                in self.decode().iter()
                if local_name(x.tag) == 'Attribute' and x.get('Name') == name]

    @staticmethod
    def attribute_values(attribute):
        """Return the text of each AttributeValue child of an Attribute."""
        return [(x.text or '').strip()
                for x
                in attribute
                if local_name(x.tag) == 'AttributeValue']

    @staticmethod
    def split_role(value):
        """Split a 'role,principal' value into a RoleGrant."""
        parts = value.split(',')
        if len(parts) != 2 or not all(p.strip() for p in parts):
            raise ParseError(
                'Malformed role value "{}"; expected "role,principal"'.format(
                    value))
        return RoleGrant(role_arn=parts[0].strip(),
                         principal_arn=parts[1].strip())

    def roles(self):
        """Extract the assumable roles from the assertion.

        Returns: List of RoleGrant in document order; empty when the
        assertion carries no Role attribute
        """
        grants = []
        for attribute in self.attributes(ROLE_ATTRIBUTE):
            for value in self.attribute_values(attribute):
                grants.append(self.split_role(value))
        LOG.debug('Found {} role(s) in the assertion'.format(len(grants)))
        return grants

    def session_duration(self):
        """Extract the requested session duration.

        Returns: The duration in seconds as an int (or a float when the IdP
        sent a fractional value), or None when no usable value is present
        """
        attributes = self.attributes(DURATION_ATTRIBUTE)
        if not attributes:
            return None

        values = self.attribute_values(attributes[0])
        if not values:
            raise ParseError('SessionDuration attribute has no value')

        try:
            return int(values[0])
        except ValueError:
            pass
        try:
            return float(values[0])
        except ValueError:
            LOG.warning('Ignoring non-numeric SessionDuration "{}"'.format(
                values[0]))
            return None
