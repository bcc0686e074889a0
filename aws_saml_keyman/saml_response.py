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
"""Recover the SAMLResponse value from whatever was captured."""
import logging
import urllib.parse

from bs4 import BeautifulSoup

LOG = logging.getLogger(__name__)

FIELD = 'SAMLResponse'
INPUT_FORMATS = ['auto', 'raw', 'form', 'html']


class MissingSamlResponse(Exception):
    """Raised when no SAMLResponse field can be found."""


def assertion_from_form(form_data):
    """Return the first SAMLResponse value of a parsed form submission.

    Args:
    form_data: Dict of field name to list of values, as a browser hands
               over an intercepted form post

    Returns: String assertion, still base64 encoded
    """
    values = form_data.get(FIELD) or []
    if not values or not values[0]:
        raise MissingSamlResponse('Form has no {} field'.format(FIELD))
    return values[0]


def assertion_from_body(body):
    """Parse an application/x-www-form-urlencoded request body."""
    return assertion_from_form(urllib.parse.parse_qs(body.strip()))


def assertion_from_html(html):
    """Parse the assertion out of an IdP's auto-submitting SAML form.

    Args:
    html: String html of the page that posts to AWS

    Returns: String assertion, still base64 encoded
    """
    assertion = ''
    soup = BeautifulSoup(html, 'html.parser')
    for inputtag in soup.find_all('input'):
        if inputtag.get('name') == FIELD:
            assertion = inputtag.get('value') or ''
            break
    if assertion == '':
        raise MissingSamlResponse('Page has no {} input'.format(FIELD))
    return assertion


def detect_format(text):
    """Guess what kind of capture we were handed."""
    stripped = text.lstrip()
    if stripped.startswith('<'):
        return 'html'
    if '{}='.format(FIELD) in stripped:
        return 'form'
    return 'raw'


def extract_assertion(text, input_format='auto'):
    """Return the assertion from a captured page, form body or raw value."""
    if input_format == 'auto':
        input_format = detect_format(text)
        LOG.debug('Detected {} input'.format(input_format))

    if input_format == 'html':
        return assertion_from_html(text)
    if input_format == 'form':
        return assertion_from_body(text)
    if input_format == 'raw':
        assertion = text.strip()
        if not assertion:
            raise MissingSamlResponse('No assertion provided')
        return assertion
    raise ValueError('Unknown input format {}'.format(input_format))
