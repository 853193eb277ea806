#!/usr/bin/env python
"""
AWS signature signing exceptions.
"""

class SigningError(Exception):
    """
    Base class for errors raised while producing an AWS SigV4 signature.
    """
    pass

class ValidationError(SigningError, ValueError):
    """
    An exception indicating that the request to be signed is malformed: a
    body-required method without a body, missing credential fields, an empty
    service or region, or a path that cannot be canonicalized.

    API-facing callers map this to an HTTP 400 (Bad Request) response.
    """
    http_status = 400

class CredentialResolutionError(SigningError):
    """
    An exception indicating that credentials could not be obtained from the
    credential source. The signer never retries or wraps this.
    """
    pass

# Local variables:
# mode: Python
# tab-width: 8
# indent-tabs-mode: nil
# End:
# vi: set expandtab tabstop=8
