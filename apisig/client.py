"""
HTTP client that signs requests for API Gateway and decodes the responses.

A ``RequestConfig`` describes one call. The client turns it into a
``Request``, signs it when credentials are present, sends exactly the signed
headers and body through httpx, and decodes the body with the caller's
``Decoder``.
"""

import json
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Generic, Mapping, Optional, Tuple, TypeVar, Union
from urllib.parse import quote, urlencode, urlsplit, urlunsplit

import httpx

from .errors import (
    InvalidHeaderError,
    InvalidResponseError,
    InvalidURLError,
    NetworkError,
    SigningError,
)
from .log import SecretFilter
from .sigv4 import Clock, Credentials, Method, Request, SigV4Signer

logger = logging.getLogger(__name__)

T = TypeVar('T')

DEFAULT_CONTENT_TYPE = 'application/json'

Pairs = Tuple[Tuple[str, str], ...]


class SigningFailurePolicy(str, Enum):
    """What to do when a request with credentials cannot be signed."""

    RAISE = 'raise'
    SEND_UNSIGNED = 'send-unsigned'


@dataclass(frozen=True)
class RawText:
    """Decode the body as text."""

    encoding: str = 'utf-8'

    def decode(self, content: bytes) -> str:
        return content.decode(self.encoding)


def _identity(value: Any) -> Any:
    return value


@dataclass(frozen=True)
class StructuredJSON(Generic[T]):
    """Parse the body as JSON and hand the result to ``loader``.

    ``loader`` builds the caller's type, e.g. a dataclass constructor wrapped
    in a lambda or a model's validate method. Any ValueError, TypeError or
    KeyError it raises is reported as an invalid response.
    """

    loader: Callable[[Any], T] = _identity

    def decode(self, content: bytes) -> T:
        return self.loader(json.loads(content))


Decoder = Union[RawText, StructuredJSON]


def _pairs(values: Optional[Mapping[str, Any]]) -> Pairs:
    return tuple((str(k), str(v)) for k, v in (values or {}).items())


def _parse_endpoint(endpoint: str):
    if not endpoint or any(ch.isspace() or ord(ch) < 0x20 or ord(ch) == 0x7f for ch in endpoint):
        raise InvalidURLError(f"Invalid endpoint: {endpoint!r}")
    try:
        parts = urlsplit(endpoint)
        parts.port  # raises ValueError for a malformed port
    except ValueError as e:
        raise InvalidURLError(f"Invalid endpoint: {endpoint!r}") from e
    if parts.scheme.lower() not in ('http', 'https') or not parts.hostname:
        raise InvalidURLError(f"Endpoint is not an absolute http(s) URL: {endpoint!r}")
    return parts


def _check_header(name: str, value: str) -> None:
    try:
        name.encode('ascii')
        value.encode('ascii')
    except UnicodeEncodeError as e:
        raise InvalidHeaderError(f"Header {name!r} is not ASCII") from e


@dataclass(frozen=True)
class RequestConfig:
    """Immutable description of one API call.

    The ``with_*`` methods return updated copies:

        config = (RequestConfig('https://abc.execute-api.us-east-1.amazonaws.com/prod/items')
                  .with_query({'limit': 10})
                  .with_auth(Credentials('AKID', 'secret')))
    """

    endpoint: str
    method: Method = Method.GET
    query: Pairs = ()
    headers: Pairs = ()
    json: Any = None
    credentials: Optional[Credentials] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, 'method', Method(self.method.upper()))

    def with_method(self, method: Union[Method, str]) -> 'RequestConfig':
        return replace(self, method=method)

    def with_query(self, query: Mapping[str, Any]) -> 'RequestConfig':
        return replace(self, query=self.query + _pairs(query))

    def with_headers(self, headers: Mapping[str, Any]) -> 'RequestConfig':
        return replace(self, headers=self.headers + _pairs(headers))

    def with_json(self, body: Any) -> 'RequestConfig':
        return replace(self, json=body)

    def with_auth(self, credentials: Optional[Credentials]) -> 'RequestConfig':
        return replace(self, credentials=credentials)

    def build(self) -> Request:
        """Assemble the unsigned request.

        Query parameters are sorted by name, percent-encoded and appended to
        any query already present in the endpoint.
        """
        parts = _parse_endpoint(self.endpoint)

        query = parts.query
        if self.query:
            encoded = urlencode(sorted(self.query), quote_via=quote)
            query = f"{query}&{encoded}" if query else encoded
        url = urlunsplit((parts.scheme, parts.netloc, parts.path, query, ''))
        try:
            # Sign the URL as httpx will put it on the wire (percent-encoded).
            url = str(httpx.URL(url))
        except httpx.InvalidURL as e:
            raise InvalidURLError(f"Invalid endpoint: {self.endpoint!r}") from e

        headers = {}
        for name, value in self.headers:
            _check_header(name, value)
            for existing in [k for k in headers if k.lower() == name.lower()]:
                del headers[existing]
            headers[name] = value
        if not any(name.lower() == 'content-type' for name in headers):
            headers['Content-Type'] = DEFAULT_CONTENT_TYPE

        body = None
        if self.json is not None:
            body = json.dumps(self.json).encode('utf-8')

        return Request(self.method, url, headers, body)


class _BaseClient:

    def __init__(
            self,
            signing_failure: SigningFailurePolicy = SigningFailurePolicy.RAISE,
            clock: Optional[Clock] = None
    ) -> None:
        self.signing_failure = SigningFailurePolicy(signing_failure)
        self._clock = clock

    def prepare(self, config: RequestConfig) -> Request:
        """Build and, when credentials are set, sign the request for ``config``."""
        request = config.build()
        if config.credentials is None:
            return request

        credentials = config.credentials
        SecretFilter.register_secret(credentials.secret_key)
        SecretFilter.register_secret(credentials.session_token)
        try:
            return SigV4Signer.from_credentials(credentials, self._clock).sign(request)
        except SigningError as e:
            if self.signing_failure is SigningFailurePolicy.RAISE:
                raise
            logger.warning("Sending %s %s unsigned: %s", request.method.value, request.url, e)
            return request

    @staticmethod
    def _config(
            endpoint: str,
            method: Method,
            body: Any,
            query: Optional[Mapping[str, Any]],
            headers: Optional[Mapping[str, Any]],
            auth: Optional[Credentials]
    ) -> RequestConfig:
        return RequestConfig(
            endpoint,
            method=method,
            query=_pairs(query),
            headers=_pairs(headers),
            json=body,
            credentials=auth,
        )

    @staticmethod
    def _decode(response: httpx.Response, decoder: Decoder) -> Any:
        try:
            return decoder.decode(response.content)
        except (ValueError, TypeError, KeyError) as e:
            raise InvalidResponseError(
                f"Cannot decode response from {response.request.url}: {e}",
                status_code=response.status_code,
            ) from e

    @staticmethod
    def _log_dispatch(request: Request) -> None:
        logger.debug(
            "%s %s (%s)",
            request.method.value,
            request.url,
            'signed' if 'Authorization' in request.headers else 'unsigned',
        )


class Client(_BaseClient):
    """Synchronous client.

    Every call returns the decoded value or raises exactly one of
    InvalidURLError, InvalidHeaderError, SigningError, NetworkError or
    InvalidResponseError.
    """

    def __init__(
            self,
            transport: Optional[httpx.BaseTransport] = None,
            timeout: Union[float, httpx.Timeout, None] = None,
            signing_failure: SigningFailurePolicy = SigningFailurePolicy.RAISE,
            clock: Optional[Clock] = None
    ) -> None:
        super().__init__(signing_failure, clock)
        kwargs = {'transport': transport}
        if timeout is not None:
            kwargs['timeout'] = timeout
        self._http = httpx.Client(**kwargs)

    def send(self, config: RequestConfig, decoder: Decoder = RawText()) -> Any:
        request = self.prepare(config)
        self._log_dispatch(request)
        try:
            response = self._http.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            )
        except httpx.InvalidURL as e:
            raise InvalidURLError(str(e)) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{request.method.value} {request.url} failed: {e}") from e
        return self._decode(response, decoder)

    def get(
            self,
            endpoint: str,
            *,
            query: Optional[Mapping[str, Any]] = None,
            headers: Optional[Mapping[str, Any]] = None,
            auth: Optional[Credentials] = None,
            decoder: Decoder = RawText()
    ) -> Any:
        return self.send(self._config(endpoint, Method.GET, None, query, headers, auth), decoder)

    def post(
            self,
            endpoint: str,
            *,
            json: Any = None,
            query: Optional[Mapping[str, Any]] = None,
            headers: Optional[Mapping[str, Any]] = None,
            auth: Optional[Credentials] = None,
            decoder: Decoder = RawText()
    ) -> Any:
        return self.send(self._config(endpoint, Method.POST, json, query, headers, auth), decoder)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> 'Client':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class AsyncClient(_BaseClient):
    """Asyncio client; each coroutine resolves once with a value or one error."""

    def __init__(
            self,
            transport: Optional[httpx.AsyncBaseTransport] = None,
            timeout: Union[float, httpx.Timeout, None] = None,
            signing_failure: SigningFailurePolicy = SigningFailurePolicy.RAISE,
            clock: Optional[Clock] = None
    ) -> None:
        super().__init__(signing_failure, clock)
        kwargs = {'transport': transport}
        if timeout is not None:
            kwargs['timeout'] = timeout
        self._http = httpx.AsyncClient(**kwargs)

    async def send(self, config: RequestConfig, decoder: Decoder = RawText()) -> Any:
        request = self.prepare(config)
        self._log_dispatch(request)
        try:
            response = await self._http.request(
                request.method.value,
                request.url,
                headers=dict(request.headers),
                content=request.body,
            )
        except httpx.InvalidURL as e:
            raise InvalidURLError(str(e)) from e
        except httpx.HTTPError as e:
            raise NetworkError(f"{request.method.value} {request.url} failed: {e}") from e
        return self._decode(response, decoder)

    async def get(
            self,
            endpoint: str,
            *,
            query: Optional[Mapping[str, Any]] = None,
            headers: Optional[Mapping[str, Any]] = None,
            auth: Optional[Credentials] = None,
            decoder: Decoder = RawText()
    ) -> Any:
        return await self.send(self._config(endpoint, Method.GET, None, query, headers, auth), decoder)

    async def post(
            self,
            endpoint: str,
            *,
            json: Any = None,
            query: Optional[Mapping[str, Any]] = None,
            headers: Optional[Mapping[str, Any]] = None,
            auth: Optional[Credentials] = None,
            decoder: Decoder = RawText()
    ) -> Any:
        return await self.send(self._config(endpoint, Method.POST, json, query, headers, auth), decoder)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> 'AsyncClient':
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
