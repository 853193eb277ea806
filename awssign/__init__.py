#!/usr/bin/env python
"""
AWS Signature Version 4 request signing.
"""

from .canonical import RequestDescriptor, CanonicalRequest, canonicalize
from .credentials import (
    AssumeRoleCredentialSource, CredentialSource, DefaultCredentialSource,
    SigningCredentials, StaticCredentialSource, get_credential_source)
from .exc import CredentialResolutionError, SigningError, ValidationError
from .request import sign_request
from .sigv4 import (
    AWSSigV4Signer, SignatureMode, SignedRequest, SigningContext,
    build_string_to_sign, derive_signing_key, sign)

# Local variables:
# mode: Python
# tab-width: 8
# indent-tabs-mode: nil
# End:
# vi: set expandtab tabstop=8
