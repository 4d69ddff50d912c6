"""
AWS Signature Version 4 - Header Signing

This package computes the Authorization, X-Amz-Date and X-Amz-Security-Token
headers for a request without depending on botocore for signing operations.
"""

import logging

from .exceptions import (
    BackendUnavailableError,
    InvalidKeyMaterialError,
    MalformedURLError,
    SerializationError,
    SigningError,
)
from .sigv4 import (
    ALGORITHM,
    UNSIGNED_PAYLOAD,
    Canonicalization,
    Credentials,
    Headers,
    Service,
    SigningRequest,
    SigV4Signer,
    sign_request,
)

__version__ = "0.1.0"
__all__ = [
    "ALGORITHM",
    "UNSIGNED_PAYLOAD",
    "BackendUnavailableError",
    "Canonicalization",
    "Credentials",
    "Headers",
    "InvalidKeyMaterialError",
    "MalformedURLError",
    "SerializationError",
    "Service",
    "SigningError",
    "SigningRequest",
    "SigV4Signer",
    "sign_request",
]

logging.getLogger(__name__).addHandler(logging.NullHandler())
