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
"""
AWS federation client and credential formatting; how we talk to STS to get
the creds and how we lay them out for the AWS CLI.
"""
import collections
import concurrent.futures
import logging

import requests

LOG = logging.getLogger(__name__)

STS_ENDPOINT = 'https://sts.amazonaws.com'
STS_VERSION = '2011-06-15'
MIN_DURATION = 300
MAX_DURATION = 86400

CredentialResult = collections.namedtuple(
    'CredentialResult',
    ['assumed_role_user_arn', 'access_key_id', 'secret_access_key',
     'session_token', 'expiration'],
    defaults=[None])


class ExchangeError(Exception):
    """Raised when STS does not hand back credentials for a role."""

    def __init__(self, role_arn, message):
        self.role_arn = role_arn
        super().__init__('{}: {}'.format(role_arn, message))


def valid_duration(duration):
    """Return the duration as an int if STS will accept it, else None."""
    if duration is None or isinstance(duration, bool):
        return None
    try:
        value = float(duration)
    except (TypeError, ValueError):
        return None
    if not value.is_integer() or not MIN_DURATION <= value <= MAX_DURATION:
        return None
    return int(value)


class FederationClient(object):
    """Amazon Federated Credential Generator.

    This class is used to contact Amazon with a SAML Assertion and get back
    a set of temporary Federated credentials for each role the assertion
    grants.
    """

    def __init__(self, endpoint=STS_ENDPOINT, timeout=30):
        self.endpoint = endpoint
        self.timeout = timeout

    @staticmethod
    def request_data(grant, session_duration, assertion):
        """Build the AssumeRoleWithSAML form fields for one role.

        Returns: List of (field, value) tuples in the order they are sent
        """
        data = [('Action', 'AssumeRoleWithSAML'),
                ('Version', STS_VERSION),
                ('PrincipalArn', grant.principal_arn),
                ('RoleArn', grant.role_arn),
                ('SAMLAssertion', assertion)]
        duration = valid_duration(session_duration)
        if duration is not None:
            data.append(('DurationSeconds', str(duration)))
        elif session_duration is not None:
            LOG.debug('Dropping unusable session duration {}'.format(
                session_duration))
        return data

    @staticmethod
    def error_message(resp):
        """Pull the STS error message out of a failed response."""
        try:
            error = resp.json()['Error']
            return '{} ({})'.format(error['Message'], error['Code'])
        except (ValueError, KeyError, TypeError):
            return 'HTTP {}'.format(resp.status_code)

    @staticmethod
    def parse_response(grant, body):
        """Unpack the AssumeRoleWithSAML JSON response.

        Returns: CredentialResult
        """
        try:
            result = (body['AssumeRoleWithSAMLResponse']
                      ['AssumeRoleWithSAMLResult'])
            arn = result['AssumedRoleUser']['Arn']
            creds = result['Credentials']
            cred_result = CredentialResult(
                assumed_role_user_arn=arn,
                access_key_id=creds['AccessKeyId'],
                secret_access_key=creds['SecretAccessKey'],
                session_token=creds['SessionToken'],
                expiration=creds.get('Expiration'))
        except (KeyError, TypeError, AttributeError) as err:
            raise ExchangeError(grant.role_arn,
                                'Response is missing {}'.format(err))

        # Everything but the expiration ends up in the credentials file
        for field, value in cred_result._asdict().items():
            if field != 'expiration' and (
                    not isinstance(value, str) or not value):
                raise ExchangeError(
                    grant.role_arn,
                    'Response has no usable {} ({!r})'.format(field, value))

        if '/' not in arn:
            raise ExchangeError(grant.role_arn,
                                'Unexpected assumed role ARN {}'.format(arn))
        return cred_result

    def exchange(self, grant, session_duration, assertion):
        """Use the SAML Assertion to get credentials for a single role.

        args:
            grant: RoleGrant to assume
            session_duration: Requested duration; only sent when STS accepts
            assertion: The raw (base64) SAMLResponse

        Returns: CredentialResult
        """
        LOG.info('Assuming role: {}'.format(grant.role_arn))
        headers = {'Accept': 'application/json',
                   'Content-Type': 'application/x-www-form-urlencoded'}
        try:
            resp = requests.post(
                self.endpoint,
                headers=headers,
                data=self.request_data(grant, session_duration, assertion),
                timeout=self.timeout)
        except requests.exceptions.RequestException as err:
            raise ExchangeError(grant.role_arn,
                                'Request failed: {}'.format(err))

        if not resp.ok:
            raise ExchangeError(grant.role_arn, self.error_message(resp))

        try:
            body = resp.json()
        except ValueError:
            raise ExchangeError(grant.role_arn, 'Response is not JSON')

        result = self.parse_response(grant, body)
        LOG.debug('Assumed {} (expires {})'.format(
            result.assumed_role_user_arn, result.expiration))
        return result

    def exchange_all(self, grants, session_duration, assertion):
        """Assume every role at once.

        All requests are in flight together. Results line up with grants no
        matter which response arrives first; the first failure aborts the
        whole set.

        Returns: List of CredentialResult
        """
        if not grants:
            return []

        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=len(grants))
        try:
            futures = [executor.submit(self.exchange, grant,
                                       session_duration, assertion)
                       for grant in grants]
            concurrent.futures.wait(
                futures, return_when=concurrent.futures.FIRST_EXCEPTION)
            for future in futures:
                if future.done() and future.exception() is not None:
                    for pending in futures:
                        pending.cancel()
                    raise future.exception()
            return [future.result() for future in futures]
        finally:
            executor.shutdown(wait=False)


def profile_name(result):
    """Name a profile after the role in an assumed-role ARN."""
    return result.assumed_role_user_arn.split('/')[1]


def format_credentials(result, profile_name_override=None):
    """Lay out one set of credentials as a shared credentials profile."""
    name = profile_name_override or profile_name(result)
    return ('[{name}]\n'
            'aws_access_key_id={key}\n'
            'aws_secret_access_key={secret}\n'
            'aws_session_token={token}').format(
                name=name,
                key=result.access_key_id,
                secret=result.secret_access_key,
                token=result.session_token)


def format_document(results):
    """Merge all of a run's credentials into one credentials document.

    A run that assumed a single role always writes it to the 'default'
    profile; otherwise each profile is named after its role.
    """
    if len(results) == 1:
        return format_credentials(results[0], 'default')
    return '\n'.join(format_credentials(result) for result in results)
