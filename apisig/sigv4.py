"""
AWS Signature Version 4 signing for API Gateway (execute-api) requests.

The signer builds the canonical request, derives the signing key through the
HMAC-SHA256 ladder and emits the Host, X-Amz-Date and Authorization headers.
It reads the clock and nothing else: no network I/O, no shared state.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit

from .errors import SigningError

logger = logging.getLogger(__name__)

ALGORITHM = 'AWS4-HMAC-SHA256'
SERVICE = 'execute-api'
TERMINATOR = 'aws4_request'
DEFAULT_REGION = 'us-east-1'

TIMESTAMP_FORMAT = '%Y%m%dT%H%M%SZ'

EMPTY_SHA256 = hashlib.sha256(b'').hexdigest()

_DEFAULT_PORTS = {'http': 80, 'https': 443}

Headers = Dict[str, str]
Clock = Callable[[], datetime]


class Method(str, Enum):
    GET = 'GET'
    POST = 'POST'


@dataclass(frozen=True)
class Credentials:
    access_key: str
    secret_key: str = field(repr=False)
    region: str = DEFAULT_REGION
    session_token: Optional[str] = field(default=None, repr=False)


@dataclass(frozen=True)
class Request:
    """An HTTP request descriptor.

    Headers are copied into a read-only mapping and text bodies are encoded as
    UTF-8, so a Request never changes after construction. Only GET and POST
    (in any case) can be signed.
    """

    method: Union[Method, str]
    url: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Optional[bytes] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'headers', MappingProxyType(dict(self.headers)))
        if isinstance(self.body, str):
            object.__setattr__(self, 'body', self.body.encode('utf-8'))


@dataclass(frozen=True)
class SigningDetails:
    """Every intermediate value of one signing operation."""

    timestamp: str
    date: str
    canonical_request: str
    canonical_request_hash: str
    credential_scope: str
    string_to_sign: str
    signing_key: bytes = field(repr=False)
    signature: str
    signed_headers: str
    headers: Mapping[str, str]

    @property
    def authorization(self) -> str:
        return self.headers['Authorization']


def _sha256_hex(data: Union[str, bytes]) -> str:
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode('utf-8'), hashlib.sha256).digest()


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def amz_timestamps(now: datetime) -> Tuple[str, str]:
    """Return the (full, short) SigV4 timestamps for ``now``.

    Naive datetimes are taken to be UTC already.
    """
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    full = now.strftime(TIMESTAMP_FORMAT)
    return full, full[:8]


def host_header(url: str) -> str:
    """Host header value for ``url``; the port is kept unless it is the scheme default."""
    parts = urlsplit(url)
    if not parts.hostname:
        raise SigningError(f"Cannot resolve a host from URL: {url!r}")
    try:
        port = parts.port
    except ValueError as e:
        raise SigningError(f"Invalid port in URL: {url!r}") from e

    host = parts.netloc.rpartition('@')[2].lower()
    if port is not None and port == _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = host[:host.rindex(':')]
    return host


def canonical_headers(headers: Mapping[str, Any]) -> Tuple[str, str]:
    """Return the canonical header block and the signed header list."""
    lowered: Dict[str, str] = {}
    for name, value in headers.items():
        if not isinstance(name, str) or not name:
            raise SigningError(f"Header name cannot be signed: {name!r}")
        key = name.lower()
        if key in lowered:
            raise SigningError(f"Duplicate header: {name!r}")
        lowered[key] = str(value)

    names = sorted(lowered)
    block = '\n'.join(f"{name}:{lowered[name]}" for name in names)
    return block, ';'.join(names)


def canonical_request(
        method: str,
        path: str,
        query: str,
        headers: Mapping[str, Any],
        body: Optional[bytes] = None
) -> str:
    # The raw query is signed exactly as it will be sent; it is not re-sorted.
    block, signed_headers = canonical_headers(headers)
    return '\n'.join([
        method.upper(),
        path or '/',
        query,
        block,
        '',
        signed_headers,
        _sha256_hex(body or b''),
    ])


def credential_scope(date: str, region: str) -> str:
    return '/'.join([date, region, SERVICE, TERMINATOR])


def string_to_sign(timestamp: str, scope: str, canonical_request_hash: str) -> str:
    return '\n'.join([ALGORITHM, timestamp, scope, canonical_request_hash])


def derive_signing_key(secret_key: str, date: str, region: str) -> bytes:
    k_date = _hmac_sha256(f"AWS4{secret_key}".encode('utf-8'), date)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, SERVICE)
    return _hmac_sha256(k_service, TERMINATOR)


def compute_signature(signing_key: bytes, to_sign: str) -> str:
    return hmac.new(signing_key, to_sign.encode('utf-8'), hashlib.sha256).hexdigest()


def authorization_header(access_key: str, scope: str, signed_headers: str, signature: str) -> str:
    return (
        f"{ALGORITHM} Credential={access_key}/{scope}, "
        f"SignedHeaders={signed_headers}, Signature={signature}"
    )


def _drop_header(headers: Headers, name: str) -> None:
    for existing in [k for k in headers if isinstance(k, str) and k.lower() == name.lower()]:
        del headers[existing]


def _set_header(headers: Headers, name: str, value: str) -> None:
    _drop_header(headers, name)
    headers[name] = value


class SigV4Signer:
    """Signs requests for the execute-api service.

    Each call reads the clock once and derives a fresh signing key, so a
    signer can be shared between threads.
    """

    def __init__(
            self,
            access_key: str,
            secret_key: str,
            region: str = DEFAULT_REGION,
            token: Optional[str] = None,
            clock: Optional[Clock] = None
    ) -> None:
        self.access_key = access_key
        self.secret_key = secret_key
        self.region = region
        self.token = token
        self._clock = clock or utc_now

    @classmethod
    def from_credentials(cls, credentials: Credentials, clock: Optional[Clock] = None) -> 'SigV4Signer':
        return cls(
            credentials.access_key,
            credentials.secret_key,
            credentials.region,
            credentials.session_token,
            clock
        )

    def signing_details(self, request: Request) -> SigningDetails:
        if not request.method:
            raise SigningError("Request has no HTTP method")
        try:
            method = Method(request.method.upper()).value
        except (AttributeError, ValueError) as e:
            raise SigningError(f"Unsupported HTTP method: {request.method!r}") from e
        if not isinstance(request.headers, Mapping):
            raise SigningError("Request headers cannot be enumerated")

        host = host_header(request.url)
        parts = urlsplit(request.url)
        timestamp, date = amz_timestamps(self._clock())

        headers: Headers = dict(request.headers)
        _drop_header(headers, 'Authorization')
        _set_header(headers, 'Host', host)
        _set_header(headers, 'X-Amz-Date', timestamp)
        if self.token:
            _set_header(headers, 'X-Amz-Security-Token', self.token)

        canonical = canonical_request(method, parts.path, parts.query, headers, request.body)
        canonical_hash = _sha256_hex(canonical)
        scope = credential_scope(date, self.region)
        to_sign = string_to_sign(timestamp, scope, canonical_hash)
        logger.debug("Canonical request:\n%s", canonical)
        logger.debug("String to sign:\n%s", to_sign)

        signing_key = derive_signing_key(self.secret_key, date, self.region)
        signature = compute_signature(signing_key, to_sign)
        _, signed_headers = canonical_headers(headers)
        headers['Authorization'] = authorization_header(self.access_key, scope, signed_headers, signature)

        return SigningDetails(
            timestamp=timestamp,
            date=date,
            canonical_request=canonical,
            canonical_request_hash=canonical_hash,
            credential_scope=scope,
            string_to_sign=to_sign,
            signing_key=signing_key,
            signature=signature,
            signed_headers=signed_headers,
            headers=MappingProxyType(headers),
        )

    def sign(self, request: Request) -> Request:
        """Return a copy of ``request`` carrying the SigV4 headers."""
        details = self.signing_details(request)
        return replace(request, headers=details.headers)

    def create_headers(
            self,
            method: str,
            url: str,
            headers: Optional[Mapping[str, Any]] = None,
            body: Optional[Union[str, bytes]] = None
    ) -> Headers:
        request = Request(method, url, {k: str(v) for k, v in (headers or {}).items()}, body)
        return dict(self.signing_details(request).headers)
