"""
SigV4 signing routines.
"""

from collections import namedtuple
from datetime import timedelta
from enum import Enum
from hashlib import sha256
import hmac
from logging import getLogger

from .canonical import (
    RequestDescriptor, canonicalize, get_signed_headers, uri_encode)
from .credentials import SigningCredentials
from .dateutil import format_amz_date, format_date_stamp, to_utc, utcnow
from .exc import ValidationError

# pylint: disable=C0103

# Algorithm for AWS SigV4
AWS4_HMAC_SHA256 = "AWS4-HMAC-SHA256"

# Longest validity window AWS accepts for a presigned URL (7 days).
MAX_PRESIGN_EXPIRES = 7 * 24 * 60 * 60

# Header and query string keys
_authorization = "Authorization"
_aws4 = b"AWS4"
_aws4_request = "aws4_request"
_aws4_request_bytes = _aws4_request.encode("utf-8")
_host = "host"
_x_amz_algorithm = "X-Amz-Algorithm"
_x_amz_credential = "X-Amz-Credential"
_x_amz_date = "X-Amz-Date"
_x_amz_date_lower = "x-amz-date"
_x_amz_expires = "X-Amz-Expires"
_x_amz_security_token = "X-Amz-Security-Token"
_x_amz_security_token_lower = "x-amz-security-token"
_x_amz_signature = "X-Amz-Signature"
_x_amz_signedheaders = "X-Amz-SignedHeaders"

# Query parameters the signer owns in query mode.
_presign_parameters = (
    _x_amz_algorithm, _x_amz_credential, _x_amz_date, _x_amz_expires,
    _x_amz_security_token, _x_amz_signature, _x_amz_signedheaders)

# Logging instance
log = getLogger("awssign.sigv4")

class SignatureMode(Enum):
    """
    Where the signature is attached.
    """
    HEADERS = "headers"
    QUERY = "query"

class SigningContext(namedtuple(
        "SigningContext",
        ["region", "service", "timestamp", "credential_scope"])):
    """
    The region, service and UTC timestamp a signature is scoped to.
    """
    __slots__ = ()

    @classmethod
    def create(cls, region, service, timestamp):
        """
        SigningContext.create(region, service, timestamp) -> SigningContext
        """
        timestamp = to_utc(timestamp)
        scope = "/".join(
            [format_date_stamp(timestamp), region, service, _aws4_request])
        return cls(region, service, timestamp, scope)

    @property
    def amz_date(self):
        """
        The signing timestamp as YYYYMMDDTHHMMSSZ.
        """
        return format_amz_date(self.timestamp)

    @property
    def date_stamp(self):
        """
        The signing date as YYYYMMDD.
        """
        return format_date_stamp(self.timestamp)

class SignedRequest(namedtuple(
        "SignedRequest",
        ["method", "hostname", "path", "query", "headers", "body", "url",
         "signature", "canonical_request", "string_to_sign"])):
    """
    The result of signing. body is the exact payload that was hashed; url is
    the fully-qualified https URL including the canonical query string (and,
    for presigned requests, the signature).
    """
    __slots__ = ()

def build_string_to_sign(canonical_request, context):
    """
    build_string_to_sign(canonical_request, context) -> str

    The AWS SigV4 string being signed:
        AWS4-HMAC-SHA256 + '\\n' +
        timestamp + '\\n' +
        credential_scope + '\\n' +
        sha256(canonical_request).hexdigest()
    """
    return (AWS4_HMAC_SHA256 + "\n" +
            context.amz_date + "\n" +
            context.credential_scope + "\n" +
            sha256(str(canonical_request).encode("utf-8")).hexdigest())

def derive_signing_key(secret_key, date, region, service):
    """
    derive_signing_key(secret_key, date, region, service) -> bytes

    Derive the signing key for a YYYYMMDD date, region and service. The key
    is only valid for that UTC day; it is not cached.
    """
    k_secret = _aws4 + secret_key.encode("utf-8")
    k_date = hmac.new(k_secret, date.encode("utf-8"), sha256).digest()
    k_region = hmac.new(k_date, region.encode("utf-8"), sha256).digest()
    k_service = hmac.new(k_region, service.encode("utf-8"), sha256).digest()
    return hmac.new(k_service, _aws4_request_bytes, sha256).digest()

def compute_signature(signing_key, string_to_sign):
    """
    compute_signature(signing_key, string_to_sign) -> str
    """
    return hmac.new(signing_key, string_to_sign.encode("utf-8"),
                    sha256).hexdigest()

def _set_header(headers, name, value):
    for key in [key for key in headers if key.lower() == name.lower()]:
        del headers[key]
    headers[name] = value

def _pop_header(headers, name):
    for key in [key for key in headers if key.lower() == name.lower()]:
        del headers[key]

def _build_url(hostname, uri_path, query_string):
    url = "https://" + hostname + uri_path
    if query_string:
        url += "?" + query_string
    return url

def _mask_session_token(text, session_token):
    """
    Replace the session token, raw or percent-encoded, for logging.
    """
    if session_token:
        for form in (session_token, uri_encode(session_token)):
            text = text.replace(form, "<redacted>")
    return text

class AWSSigV4Signer(object):
    # pylint: disable=R0902
    """
    Sign requests with AWS SigV4, either in the Authorization header or as a
    presigned URL.
    """

    def __init__(self, **kw):
        """
        AWSSigV4Signer(
            credentials: SigningCredentials,
            region: str,
            service: str,
            mode: Union[SignatureMode, str]="headers",
            expires: Optional[int]=None,
            remove_host_header: bool=True)

        Create a new AWSSigV4Signer instance. Properties can be specified
        as keyword arguments.

        credentials: The access key, secret key and optional session token.
        region: The AWS region the request is scoped to.
        service: The name of the service being called (e.g. execute-api).
        mode: "headers" to add an Authorization header, "query" to produce a
            presigned URL.
        expires: For presigned URLs, the validity window in seconds
            (X-Amz-Expires). Omitted from the URL when None.
        remove_host_header: In headers mode, drop a host header the signer
            synthesized from the hostname so the transport can set its own.
            A host header supplied by the caller is always kept.
        """
        super(AWSSigV4Signer, self).__init__()
        self._credentials = None
        self._region = ""
        self._service = ""
        self._mode = SignatureMode.HEADERS
        self._expires = None
        self._remove_host_header = True

        for key, value in kw.items():
            setattr(self, key, value)
        return

    @property
    def credentials(self):
        """
        The SigningCredentials used to sign.
        """
        return self._credentials

    @credentials.setter
    def credentials(self, value):
        if value is not None and not isinstance(value, SigningCredentials):
            raise TypeError("Expected credentials to be SigningCredentials.")

        self._credentials = value
        return

    @property
    def region(self):
        """
        The region the request is scoped to.
        """
        return self._region

    @region.setter
    def region(self, value):
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise TypeError("Expected region to be a string.")

        self._region = value
        return

    @property
    def service(self):
        """
        The name of the service being invoked.
        """
        return self._service

    @service.setter
    def service(self, value):
        if value is None:
            value = ""
        if not isinstance(value, str):
            raise TypeError("Expected service to be a string.")

        self._service = value
        return

    @property
    def mode(self):
        """
        The SignatureMode: HEADERS or QUERY.
        """
        return self._mode

    @mode.setter
    def mode(self, value):
        try:
            self._mode = SignatureMode(value)
        except ValueError:
            raise ValidationError("Unknown signature mode: %r" % (value,))
        return

    @property
    def expires(self):
        """
        The presigned URL validity window in seconds, or None.
        """
        return self._expires

    @expires.setter
    def expires(self, value):
        if value is not None:
            if not isinstance(value, int) or isinstance(value, bool):
                raise TypeError("Expected expires to be an integer.")

            if not 1 <= value <= MAX_PRESIGN_EXPIRES:
                raise ValidationError(
                    "expires must be between 1 and %d seconds" %
                    MAX_PRESIGN_EXPIRES)

        self._expires = value
        return

    @property
    def remove_host_header(self):
        """
        Whether a synthesized host header is removed from headers-mode output.
        """
        return self._remove_host_header

    @remove_host_header.setter
    def remove_host_header(self, value):
        self._remove_host_header = bool(value)
        return

    def sign(self, request, timestamp=None):
        """
        sign(request, timestamp=None) -> SignedRequest

        Sign a RequestDescriptor. The current time is captured once unless
        timestamp (a datetime or ISO 8601 string) is given. The request
        passed in is not modified.
        """
        if not isinstance(request, RequestDescriptor):
            raise TypeError("Expected request to be a RequestDescriptor.")

        self.validate()

        if timestamp is None:
            timestamp = utcnow()

        try:
            context = SigningContext.create(
                self.region, self.service, timestamp)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if self.mode is SignatureMode.QUERY:
            return self._sign_query(request, context)

        return self._sign_headers(request, context)

    def validate(self):
        """
        Raise a ValidationError if the signer is missing its region, service
        or credentials.
        """
        if not self.service:
            raise ValidationError("service must not be empty")

        if not self.region:
            raise ValidationError("region must not be empty")

        if self.credentials is None:
            raise ValidationError("credentials are required")

        self.credentials.validate()

    def _prepare(self, request):
        # Copy the request, adding a host header from the hostname if the
        # caller did not supply one. Returns (copy, host_was_synthesized).
        signing = request.copy()

        if signing.has_header(_host):
            return signing, False

        if not signing.hostname:
            raise ValidationError(
                "A hostname or host header is required for signing")

        signing.headers[_host] = signing.hostname
        return signing, True

    def _finish(self, canonical_request, context):
        string_to_sign = build_string_to_sign(canonical_request, context)
        log.debug("Canonical request:\n%s", _mask_session_token(
            str(canonical_request), self.credentials.session_token))
        log.debug("String to sign:\n%s", string_to_sign)

        signing_key = derive_signing_key(
            self.credentials.secret_key, context.date_stamp, context.region,
            context.service)

        return compute_signature(signing_key, string_to_sign), string_to_sign

    def _sign_headers(self, request, context):
        credentials = self.credentials
        signing, synthetic_host = self._prepare(request)
        headers = signing.headers

        _pop_header(headers, _authorization)
        _set_header(headers, _x_amz_date_lower, context.amz_date)
        if credentials.session_token:
            _set_header(headers, _x_amz_security_token_lower,
                        credentials.session_token)
        else:
            _pop_header(headers, _x_amz_security_token_lower)

        if credentials.expiry is not None and \
           credentials.expiry <= context.timestamp:
            log.warning("Signing with credentials for %s that expired at %s",
                        credentials.access_key, credentials.expiry)

        canonical_request = canonicalize(signing)
        signature, string_to_sign = self._finish(canonical_request, context)

        headers[_authorization] = (
            "%s Credential=%s/%s, SignedHeaders=%s, Signature=%s" % (
                AWS4_HMAC_SHA256, credentials.access_key,
                context.credential_scope, canonical_request.signed_headers,
                signature))

        if synthetic_host and self.remove_host_header:
            del headers[_host]

        return SignedRequest(
            method=signing.method,
            hostname=signing.hostname,
            path=signing.path,
            query=signing.query,
            headers=headers,
            body=signing.payload,
            url=_build_url(signing.hostname, canonical_request.uri_path,
                           canonical_request.query_string),
            signature=signature,
            canonical_request=str(canonical_request),
            string_to_sign=string_to_sign)

    def _sign_query(self, request, context):
        credentials = self.credentials
        signing, _ = self._prepare(request)
        query = signing.query

        for key in _presign_parameters:
            query.pop(key, None)

        query[_x_amz_algorithm] = [AWS4_HMAC_SHA256]
        query[_x_amz_credential] = [
            credentials.access_key + "/" + context.credential_scope]
        query[_x_amz_date] = [context.amz_date]
        if self.expires is not None:
            query[_x_amz_expires] = [str(self.expires)]
        if credentials.session_token:
            query[_x_amz_security_token] = [credentials.session_token]
        query[_x_amz_signedheaders] = [get_signed_headers(signing.headers)]

        if credentials.expiry is not None:
            valid_until = context.timestamp + timedelta(
                seconds=self.expires or 0)
            if credentials.expiry < valid_until:
                log.warning(
                    "Presigned URL valid until %s outlives credentials for %s "
                    "expiring at %s", valid_until, credentials.access_key,
                    credentials.expiry)

        canonical_request = canonicalize(signing)
        signature, string_to_sign = self._finish(canonical_request, context)
        query[_x_amz_signature] = [signature]

        return SignedRequest(
            method=signing.method,
            hostname=signing.hostname,
            path=signing.path,
            query=query,
            headers=request.copy().headers,
            body=signing.payload,
            url=_build_url(
                signing.hostname, canonical_request.uri_path,
                canonical_request.query_string + "&" + _x_amz_signature +
                "=" + signature),
            signature=signature,
            canonical_request=str(canonical_request),
            string_to_sign=string_to_sign)

def sign(request, credentials, service, region, mode=SignatureMode.HEADERS,
         timestamp=None, expires=None, remove_host_header=True):
    """
    sign(request, credentials, service, region, mode="headers",
         timestamp=None, expires=None, remove_host_header=True)
        -> SignedRequest

    Sign a RequestDescriptor with AWS SigV4. See AWSSigV4Signer for the
    meaning of the arguments.
    """
    signer = AWSSigV4Signer(
        credentials=credentials, service=service, region=region, mode=mode,
        expires=expires, remove_host_header=remove_host_header)
    return signer.sign(request, timestamp=timestamp)

# Local variables:
# mode: Python
# tab-width: 8
# indent-tabs-mode: nil
# End:
# vi: set expandtab tabstop=8
