"""
Canonical request construction.

Two canonical forms are supported:

* host-only: the reduced form understood by backends that sign nothing but
  the ``host`` header. The path is used as given and, for anything but
  ``GET``, the raw query string (leading ``?`` included) is signed as-is.
* standard: the full multi-header, URI-encoded form used by the cloud
  provider's own services.
"""

import json
import re
from typing import Any, Dict, Mapping, NamedTuple
from urllib.parse import parse_qsl, quote, quote_plus, urlsplit

from .exceptions import MalformedURLError, SerializationError
from .hashing import sha256_hex

DEFAULT_PORTS = {
    'http': 80,
    'https': 443,
}

SIGNED_HEADERS_BLACKLIST = frozenset([
    'expect',
    'transfer-encoding',
    'user-agent',
    'x-amzn-trace-id',
])

# whitespace, controls and the characters WHATWG forbids in a host
_FORBIDDEN_HOST_CHARS = re.compile(r'[\s\x00-\x1f\x7f<>^|%]')


class ParsedURL(NamedTuple):
    scheme: str
    host: str
    path: str
    query: str


def parse_url(url: str) -> ParsedURL:
    """Split ``url`` and compute the value of its ``host`` header.

    The host is lower-cased and IDNA-encoded, IPv6 literals keep their brackets
    and the port is only kept when it differs from the scheme's default.
    """
    if not isinstance(url, str):
        raise MalformedURLError(f'URL must be a string, got {type(url).__name__}')
    try:
        url.encode('utf-8')
    except UnicodeEncodeError as exc:
        raise MalformedURLError('URL cannot be encoded as UTF-8') from exc
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError as exc:
        raise MalformedURLError(f'cannot parse URL: {exc}') from exc

    if not parts.scheme or not parts.hostname:
        raise MalformedURLError('URL must include a scheme and a host')

    host = parts.hostname
    if _FORBIDDEN_HOST_CHARS.search(host):
        raise MalformedURLError('URL host contains forbidden characters')
    if not host.isascii():
        try:
            host = host.encode('idna').decode('ascii')
        except UnicodeError as exc:
            raise MalformedURLError(f'URL host is not a valid domain name: {exc}') from exc
    if ':' in host:
        host = f'[{host}]'
    if port is not None and port != DEFAULT_PORTS.get(parts.scheme):
        host = f'{host}:{port}'
    return ParsedURL(parts.scheme, host, parts.path, parts.query)


def serialize_body(body: Any) -> bytes:
    """Render a request body as the bytes that get hashed.

    Byte and text bodies are opaque and used verbatim. Anything else is a
    structured payload and is serialized as compact JSON.
    """
    if body is None:
        return b''
    if isinstance(body, (bytes, bytearray)):
        return bytes(body)
    try:
        if isinstance(body, str):
            return body.encode('utf-8')
        text = json.dumps(body, separators=(',', ':'), ensure_ascii=False, allow_nan=False)
        return text.encode('utf-8')
    except (TypeError, ValueError) as exc:
        raise SerializationError(f'cannot serialize request body: {exc}') from exc


def _form_quote(value: str) -> str:
    # application/x-www-form-urlencoded leaves only alphanumerics and *-._ alone
    return quote_plus(value, safe='*').replace('~', '%7E')


def form_encoded_query(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    return '&'.join(f'{_form_quote(key)}={_form_quote(value)}' for key, value in pairs)


def host_only_canonical_request(method: str, url: ParsedURL, body: Any) -> str:
    if method == 'GET':
        query = form_encoded_query(url.query)
        payload = b''
    else:
        query = f'?{url.query}' if url.query else ''
        payload = serialize_body(body)

    return '\n'.join([
        method,
        url.path or '/',
        query,
        f'host:{url.host}\n',
        'host',
        sha256_hex(payload),
    ])


def remove_dot_segments(path: str) -> str:
    """Resolve ``.``/``..`` segments and collapse repeated slashes."""
    if not path:
        return ''
    output = []
    for segment in path.split('/'):
        if not segment or segment == '.':
            continue
        if segment == '..':
            if output:
                output.pop()
        else:
            output.append(segment)
    first = '/' if path[0] == '/' else ''
    last = '/' if path[-1] == '/' and output else ''
    return first + '/'.join(output) + last


def canonical_path(path: str, normalize: bool = True) -> str:
    if not normalize:
        return path or '/'
    return quote(remove_dot_segments(path) or '/', safe='/~')


def canonical_query_string(query: str) -> str:
    if not query:
        return ''
    pairs = []
    for pair in query.split('&'):
        key, _, value = pair.partition('=')
        pairs.append((key, value))
    return '&'.join(f'{key}={value}' for key, value in sorted(pairs))


def headers_to_sign(headers: Mapping[str, Any], host: str) -> Dict[str, str]:
    selected = {}
    for name, value in headers.items():
        lname = name.lower()
        if lname in SIGNED_HEADERS_BLACKLIST:
            continue
        # Trimall: strip and collapse inner runs of whitespace
        value = ' '.join(str(value).split())
        if lname in selected:
            selected[lname] = f'{selected[lname]},{value}'
        else:
            selected[lname] = value
    selected.setdefault('host', host)
    return selected


def signed_headers(selected: Mapping[str, str]) -> str:
    return ';'.join(sorted(selected))


def canonical_headers(selected: Mapping[str, str]) -> str:
    return '\n'.join(f'{name}:{selected[name]}' for name in sorted(selected))


def standard_canonical_request(
        method: str,
        url: ParsedURL,
        selected: Mapping[str, str],
        payload_hash: str,
        normalize_path: bool = True
) -> str:
    return '\n'.join([
        method,
        canonical_path(url.path, normalize_path),
        canonical_query_string(url.query),
        canonical_headers(selected) + '\n',
        signed_headers(selected),
        payload_hash,
    ])
