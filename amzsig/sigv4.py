"""
AWS Signature Version 4 signing.

The signer turns a request description and a set of credentials into the
headers that authenticate the request. It never performs I/O and keeps no
state between calls: credentials are handed in for every signature and the
signing key chain is derived from scratch each time.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .canonical import (
    headers_to_sign,
    host_only_canonical_request,
    parse_url,
    serialize_body,
    signed_headers,
    standard_canonical_request,
)
from .exceptions import InvalidKeyMaterialError
from .hashing import EMPTY_SHA256_HASH, hmac_sha256, sha256_hex, to_bytes

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
SCOPE_TERMINATOR = 'aws4_request'
UNSIGNED_PAYLOAD = 'UNSIGNED-PAYLOAD'
SIGV4_TIMESTAMP = '%Y%m%dT%H%M%SZ'

DEFAULT_HEADERS = {
    'Accept': 'application/json',
    'Content-Type': 'application/json',
}

Headers = Dict[str, Any]
Clock = Callable[[], datetime]


class Service(str, Enum):
    S3 = 's3'
    DYNAMODB = 'dynamodb'
    LAMBDA = 'lambda'
    IAM = 'iam'
    STS = 'sts'
    EC2 = 'ec2'
    EXECUTE_API = 'execute-api'


class Canonicalization(Enum):
    HOST_ONLY = 'host-only'
    STANDARD = 'standard'


@dataclass(frozen=True)
class Credentials:
    access_key_id: str
    secret_key: str = field(repr=False)
    session_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class SigningRequest:
    method: str
    url: str
    region: str
    service: Union[str, Service]
    body: Any = None
    headers: Mapping[str, Any] = field(default_factory=dict)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_amz_date(moment: datetime) -> str:
    """Format ``moment`` as ``YYYYMMDDTHHMMSSZ``. Naive datetimes are taken as UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(SIGV4_TIMESTAMP)


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    return '/'.join([date_stamp, region, service, SCOPE_TERMINATOR])


def string_to_sign(canonical_request: str, amz_date: str, scope: str, algorithm: str = ALGORITHM) -> str:
    return '\n'.join([
        algorithm,
        amz_date,
        scope,
        sha256_hex(canonical_request),
    ])


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    k_date = hmac_sha256(to_bytes('AWS4' + secret_key), to_bytes(date_stamp))
    k_region = hmac_sha256(k_date, to_bytes(region))
    k_service = hmac_sha256(k_region, to_bytes(service))
    return hmac_sha256(k_service, to_bytes(SCOPE_TERMINATOR))


def calculate_signature(signing_key: bytes, string_to_sign: str) -> str:
    return hmac_sha256(signing_key, to_bytes(string_to_sign)).hex()


def _service_name(service: Union[str, Service]) -> str:
    return service.value if isinstance(service, Service) else service


def _check_credentials(credentials: Credentials) -> None:
    if credentials is None:
        raise InvalidKeyMaterialError('no credentials supplied')
    for name in ('access_key_id', 'secret_key'):
        value = getattr(credentials, name, None)
        if not isinstance(value, str) or not value.strip():
            raise InvalidKeyMaterialError(f'credentials.{name} must be a non-empty string')


def _find_header(headers: Mapping[str, Any], name: str) -> Optional[str]:
    lname = name.lower()
    for key in headers:
        if key.lower() == lname:
            return key
    return None


def _pop_header(headers: Headers, name: str) -> None:
    key = _find_header(headers, name)
    while key is not None:
        del headers[key]
        key = _find_header(headers, name)


def _merge_headers(*sources: Mapping[str, Any]) -> Headers:
    merged: Headers = {}
    for source in sources:
        for name, value in source.items():
            _pop_header(merged, name)
            merged[name] = value
    return merged


def _payload_hash(headers: Headers, method: str, body: Any, service: str, sign_payload: bool) -> str:
    if not sign_payload:
        _pop_header(headers, 'X-Amz-Content-SHA256')
        headers['X-Amz-Content-SHA256'] = UNSIGNED_PAYLOAD
        return UNSIGNED_PAYLOAD

    payload_hash = EMPTY_SHA256_HASH if method == 'GET' else sha256_hex(serialize_body(body))
    if service == Service.S3.value:
        _pop_header(headers, 'X-Amz-Content-SHA256')
        headers['X-Amz-Content-SHA256'] = payload_hash
        return payload_hash

    existing = _find_header(headers, 'X-Amz-Content-SHA256')
    if existing is not None:
        return str(headers[existing])
    return payload_hash


def sign_request(
        request: SigningRequest,
        credentials: Credentials,
        *,
        clock: Clock = utc_now,
        canonicalization: Canonicalization = Canonicalization.HOST_ONLY,
        default_headers: Optional[Mapping[str, Any]] = None,
        sign_payload: bool = True
) -> Headers:
    """
    Compute the authentication headers for ``request``.

    Returns the default ``Accept``/``Content-Type`` headers merged with the
    request's own headers, followed by ``X-Amz-Date``, ``Authorization`` and,
    only when the credentials carry a session token, ``X-Amz-Security-Token``.

    In host-only mode the caller's headers are passed through unsigned. In
    standard mode every header except a few transport-level ones is signed,
    and ``X-Amz-Content-SHA256`` is added for S3 or unsigned payloads.
    """
    _check_credentials(credentials)
    url = parse_url(request.url)
    method = request.method.upper()
    service = _service_name(request.service)

    amz_date = format_amz_date(clock())
    scope = credential_scope(amz_date[:8], request.region, service)

    headers = _merge_headers(
        DEFAULT_HEADERS if default_headers is None else default_headers,
        request.headers,
    )
    for name in ('Authorization', 'X-Amz-Date', 'X-Amz-Security-Token'):
        _pop_header(headers, name)

    if canonicalization is Canonicalization.STANDARD:
        headers['X-Amz-Date'] = amz_date
        if credentials.session_token:
            headers['X-Amz-Security-Token'] = credentials.session_token
        payload_hash = _payload_hash(headers, method, request.body, service, sign_payload)
        selected = headers_to_sign(headers, url.host)
        canonical_request = standard_canonical_request(
            method,
            url,
            selected,
            payload_hash,
            normalize_path=service != Service.S3.value
        )
        signed = signed_headers(selected)
    else:
        canonical_request = host_only_canonical_request(method, url, request.body)
        signed = 'host'

    logger.debug('CanonicalRequest:\n%s', canonical_request)
    to_sign = string_to_sign(canonical_request, amz_date, scope)
    logger.debug('StringToSign:\n%s', to_sign)
    signing_key = derive_signing_key(credentials.secret_key, amz_date[:8], request.region, service)
    signature = calculate_signature(signing_key, to_sign)
    logger.debug('Signature:\n%s', signature)

    headers['X-Amz-Date'] = amz_date
    headers['Authorization'] = (
        f'{ALGORITHM} Credential={credentials.access_key_id}/{scope}, '
        f'SignedHeaders={signed}, Signature={signature}'
    )
    if credentials.session_token:
        headers['X-Amz-Security-Token'] = credentials.session_token
    return headers


class SigV4Signer:
    """
    Signs requests for one region and service.

    Only configuration lives on the signer; credentials are passed to every
    call, so one signer can be shared between threads.
    """

    def __init__(
            self,
            region: str,
            service: Union[str, Service],
            *,
            canonicalization: Canonicalization = Canonicalization.HOST_ONLY,
            clock: Optional[Clock] = None,
            default_headers: Optional[Mapping[str, Any]] = None,
            sign_payload: bool = True
    ) -> None:
        self.region = region
        self.service = _service_name(service)
        self.canonicalization = canonicalization
        self.clock = clock or utc_now
        self.default_headers = dict(DEFAULT_HEADERS if default_headers is None else default_headers)
        self.sign_payload = sign_payload

    def sign(self, request: SigningRequest, credentials: Credentials) -> Headers:
        """Sign a prepared request with this signer's options.

        The request's own region and service are used for the credential scope.
        """
        return sign_request(
            request,
            credentials,
            clock=self.clock,
            canonicalization=self.canonicalization,
            default_headers=self.default_headers,
            sign_payload=self.sign_payload
        )

    def create_headers(
            self,
            credentials: Credentials,
            method: str,
            url: str,
            headers: Optional[Headers] = None,
            body: Any = None
    ) -> Headers:
        request = SigningRequest(
            method=method,
            url=url,
            region=self.region,
            service=self.service,
            body=body,
            headers=headers or {},
        )
        return self.sign(request, credentials)
