"""
Credential sources for SigV4 signing.

Signing itself never looks credentials up; a CredentialSource is resolved
once, before signing begins, and the resulting SigningCredentials are passed
to the signer.
"""

from collections import namedtuple
from logging import getLogger

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .dateutil import to_utc
from .exc import CredentialResolutionError, ValidationError

# Default lifetime of assumed-role sessions, in seconds.
DEFAULT_ROLE_SESSION_DURATION = 3600

# Session name used when assuming a role.
DEFAULT_ROLE_SESSION_NAME = "awssign-session"

log = getLogger("awssign.credentials")

class SigningCredentials(namedtuple(
        "SigningCredentials",
        ["access_key", "secret_key", "session_token", "expiry"])):
    """
    SigningCredentials(access_key, secret_key, session_token=None,
                       expiry=None)

    AWS credentials used to sign a request. expiry, when known, is an aware
    UTC datetime.
    """
    __slots__ = ()

    def __new__(cls, access_key, secret_key, session_token=None, expiry=None):
        if expiry is not None:
            expiry = to_utc(expiry)
        return super(SigningCredentials, cls).__new__(
            cls, access_key, secret_key, session_token, expiry)

    def validate(self):
        """
        Raise a ValidationError if the access key or secret key is missing.
        """
        if not self.access_key:
            raise ValidationError("Credentials are missing the access key")

        if not self.secret_key:
            raise ValidationError("Credentials are missing the secret key")

    def __repr__(self):
        # Never render the secret key or token.
        return ("SigningCredentials(access_key=%r, session_token=%s, "
                "expiry=%r)" % (self.access_key,
                                "<set>" if self.session_token else None,
                                self.expiry))

class CredentialSource(object):
    """
    Something that can produce SigningCredentials.
    """

    def resolve(self):
        """
        resolve() -> SigningCredentials

        Obtain credentials. Raises CredentialResolutionError on failure.
        """
        raise NotImplementedError()

class StaticCredentialSource(CredentialSource):
    """
    A credential source that returns credentials it was given.
    """

    def __init__(self, credentials):
        super(StaticCredentialSource, self).__init__()
        self.credentials = credentials

    def resolve(self):
        return self.credentials

class DefaultCredentialSource(CredentialSource):
    """
    Credentials from the default boto3 provider chain: environment
    variables, shared config/credentials files, container and instance
    metadata.
    """

    def __init__(self, session=None):
        super(DefaultCredentialSource, self).__init__()
        self._session = session

    @property
    def session(self):
        """
        The boto3 session credentials are read from. Created on first use.
        """
        if self._session is None:
            self._session = boto3.session.Session()
        return self._session

    def resolve(self):
        try:
            credentials = self.session.get_credentials()
            if credentials is None:
                raise CredentialResolutionError(
                    "No AWS credentials were found in the default provider "
                    "chain")

            frozen = credentials.get_frozen_credentials()
        except (BotoCoreError, ClientError) as e:
            raise CredentialResolutionError(
                "Unable to resolve default AWS credentials: %s" % e) from e

        log.debug("Resolved default credentials for access key %s",
                  frozen.access_key)

        return SigningCredentials(
            frozen.access_key, frozen.secret_key, frozen.token)

class AssumeRoleCredentialSource(CredentialSource):
    """
    Temporary credentials obtained by assuming an IAM role through STS.
    """

    def __init__(self, role_arn, duration=DEFAULT_ROLE_SESSION_DURATION,
                 session_name=DEFAULT_ROLE_SESSION_NAME, session=None):
        super(AssumeRoleCredentialSource, self).__init__()
        if not isinstance(role_arn, str) or not role_arn:
            raise ValidationError("role_arn must be a non-empty string")

        if not isinstance(duration, int) or duration <= 0:
            raise ValidationError(
                "duration must be a positive number of seconds")

        self.role_arn = role_arn
        self.duration = duration
        self.session_name = session_name
        self._session = session

    @property
    def session(self):
        """
        The boto3 session whose credentials are used to call STS.
        """
        if self._session is None:
            self._session = boto3.session.Session()
        return self._session

    def resolve(self):
        try:
            response = self.session.client("sts").assume_role(
                RoleArn=self.role_arn,
                RoleSessionName=self.session_name,
                DurationSeconds=self.duration)
        except (BotoCoreError, ClientError) as e:
            raise CredentialResolutionError(
                "Unable to assume role %s: %s" % (self.role_arn, e)) from e

        creds = response["Credentials"]
        log.debug("Assumed role %s as access key %s, expiring %s",
                  self.role_arn, creds["AccessKeyId"], creds.get("Expiration"))

        return SigningCredentials(
            creds["AccessKeyId"], creds["SecretAccessKey"],
            creds.get("SessionToken"), creds.get("Expiration"))

def get_credential_source(role_arn=None,
                          duration=DEFAULT_ROLE_SESSION_DURATION,
                          session=None):
    """
    get_credential_source(role_arn=None, duration=3600, session=None)
        -> CredentialSource

    Select the credential source: role assumption when a role ARN is given,
    otherwise the default provider chain.
    """
    if role_arn:
        return AssumeRoleCredentialSource(
            role_arn, duration=duration, session=session)

    return DefaultCredentialSource(session=session)
