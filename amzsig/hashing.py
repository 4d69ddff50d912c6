import hashlib
import hmac
from typing import Union

from .exceptions import BackendUnavailableError, InvalidKeyMaterialError, SerializationError

BytesLike = Union[str, bytes]

EMPTY_SHA256_HASH = 'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'


def to_bytes(value: BytesLike) -> bytes:
    """Encode key-chain material as UTF-8 unless it already is a byte sequence."""
    if isinstance(value, bytes):
        return value
    try:
        return value.encode('utf-8')
    except UnicodeEncodeError as exc:
        raise InvalidKeyMaterialError('value cannot be encoded as UTF-8') from exc


def sha256(data: bytes) -> bytes:
    try:
        return hashlib.sha256(data).digest()
    except ValueError as exc:
        # OpenSSL refuses digests disabled by the active security policy
        raise BackendUnavailableError(f'SHA-256 is not available: {exc}') from exc


def sha256_hex(data: BytesLike) -> str:
    if isinstance(data, str):
        try:
            data = data.encode('utf-8')
        except UnicodeEncodeError as exc:
            raise SerializationError('text to hash cannot be encoded as UTF-8') from exc
    return sha256(data).hex()


def hmac_sha256(key: bytes, message: bytes) -> bytes:
    """HMAC-SHA256 of ``message`` keyed with ``key``.

    The argument order matters: every step of the signing key chain feeds its
    output in as the *key* of the next one.
    """
    if not isinstance(key, (bytes, bytearray)):
        raise InvalidKeyMaterialError(f'HMAC key must be bytes, got {type(key).__name__}')
    try:
        return hmac.new(key, message, hashlib.sha256).digest()
    except ValueError as exc:
        raise BackendUnavailableError(f'HMAC-SHA256 is not available: {exc}') from exc
