"""
Sign requests described by a flat signature input.

    from awssign.request import sign_request

    signed = sign_request({
        "service": "execute-api",
        "region": "eu-west-1",
        # Optional: IAM role to sign as (overrides the default chain)
        "role_arn": "arn:aws:iam::111111111111:role/example",
        "hostname": "example-api.com",
        "path": "/users",
        "method": "GET",
        "query": {"param1": "paramValue"},
    }, add_signature_to="headers")
"""

from logging import getLogger
from re import compile as re_compile
from urllib.parse import parse_qsl, urlsplit

from .canonical import RequestDescriptor
from .credentials import (
    DEFAULT_ROLE_SESSION_DURATION, get_credential_source)
from .exc import ValidationError
from .sigv4 import AWSSigV4Signer, SignatureMode

# Default validity window for presigned URLs, in seconds.
DEFAULT_PRESIGN_EXPIRES = 3600

# Keys of the signature input that must be present and non-empty.
_required_inputs = ("service", "region", "hostname", "method")

# Session tokens are replaced by this in log output.
_masked_value = "<redacted>"

_security_token_param = re_compile(r"(?i)(X-Amz-Security-Token=)[^&]*")

log = getLogger("awssign.request")

def build_request(signature_input):
    """
    build_request(signature_input) -> RequestDescriptor

    Build the request to sign. The host header is always taken from the
    hostname, and only non-GET requests carry a body, which they must have.
    """
    for key in _required_inputs:
        if not signature_input.get(key):
            raise ValidationError("Request %s is missing" % key)

    url = urlsplit("https://%s%s" % (
        signature_input["hostname"], signature_input.get("path") or ""))
    if not url.hostname:
        raise ValidationError(
            "Invalid hostname: %r" % signature_input["hostname"])

    query = dict(parse_qsl(url.query, keep_blank_values=True))
    query.update(signature_input.get("query") or {})

    # The signer synthesizes host from the hostname.
    headers = dict(signature_input.get("headers") or {})
    for key in [key for key in headers if key.lower() == "host"]:
        del headers[key]

    method = signature_input["method"].upper()
    request = RequestDescriptor(
        method=method, hostname=url.hostname, path=url.path, query=query,
        headers=headers)
    if method != "GET":
        request.body = signature_input.get("body")
        if not request.has_body:
            raise ValidationError("Request body is missing")

    return request

def _masked_headers(headers):
    """
    A copy of the headers with any session token replaced.
    """
    return dict(
        (key, _masked_value if key.lower() == "x-amz-security-token"
         else value)
        for key, value in headers.items())

def _masked_url(url):
    return _security_token_param.sub(r"\g<1>" + _masked_value, url)

def sign_request(signature_input, add_signature_to=SignatureMode.QUERY,
                 logger=None, credential_source=None, timestamp=None):
    """
    sign_request(signature_input, add_signature_to="query", logger=None,
                 credential_source=None, timestamp=None) -> SignedRequest

    Sign a request with the credentials of the default provider chain, or
    of the role named by signature_input["role_arn"].

    signature_input keys: service, region, role_arn (optional), hostname,
    path (optional), method, body (optional), query (optional), headers
    (optional).

    add_signature_to: "headers" for an Authorization header (the host header
        is removed from the result), "query" for a presigned URL valid for
        one hour.
    logger: Where to log the request before and after signing.
    credential_source: Overrides the source chosen from role_arn.

    Raises ValidationError for malformed input and CredentialResolutionError
    if credentials cannot be obtained.
    """
    logger = logger or log

    request = build_request(signature_input)
    logger.debug("Pre-signed request: %r", request)

    try:
        mode = SignatureMode(add_signature_to)
    except ValueError:
        raise ValidationError(
            "Unknown signature mode: %r" % (add_signature_to,))

    if credential_source is None:
        credential_source = get_credential_source(
            signature_input.get("role_arn"),
            duration=DEFAULT_ROLE_SESSION_DURATION)
    credentials = credential_source.resolve()

    signer = AWSSigV4Signer(
        credentials=credentials,
        service=signature_input["service"],
        region=signature_input["region"],
        mode=mode,
        expires=DEFAULT_PRESIGN_EXPIRES if mode is SignatureMode.QUERY
        else None)

    signed = signer.sign(request, timestamp=timestamp)
    logger.debug("Signed request: %s %s headers=%r", signed.method,
                 _masked_url(signed.url), _masked_headers(signed.headers))
    return signed
