import logging
import ssl
from typing import Awaitable, Optional, Union

from .connection import send
from .errors import ArgumentError
from .logging import get_logger
from .request import Method, RequestOptions
from .response import Response
from .timeouts import Timeout, TimeoutTypes


class Client:
    """
    JSON request builder over single-use HTTPS connections.

    The verb methods check their required arguments as soon as they are
    called and raise :class:`ArgumentError` right away; only then do they
    hand back the awaitable that performs the network exchange.

    Example:
        async with Client(timeout=10) as client:
            resp = await client.get("jsonplaceholder.typicode.com", "/posts/1")
            data = await resp.json()
    """

    def __init__(
        self,
        port: Optional[int] = None,
        use_ssl: bool = True,
        verify: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
        timeout: TimeoutTypes = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.port = port
        self.use_ssl = use_ssl
        self.verify = verify
        self.ssl_context = ssl_context
        self.timeout = Timeout.from_value(timeout)
        self.logger = logger or get_logger()

    async def request(
        self,
        method: Union[Method, str],
        host: str,
        path: str,
        body: Optional[str] = None,
        *,
        timeout: TimeoutTypes = None,
    ) -> Response:
        options = RequestOptions(host=host, path=path, method=method, body=body)
        resolved_timeout = Timeout.from_value(timeout).merge(self.timeout)
        self.logger.debug(f"{options.method.value} {host}{options.path}")
        return await send(
            options,
            port=self.port,
            use_ssl=self.use_ssl,
            verify=self.verify,
            ssl_context=self.ssl_context,
            timeout=resolved_timeout,
        )

    def get(self, host: str, path: str) -> Awaitable[Response]:
        _require(path=path)
        return self.request(Method.GET, host, path)

    def post(self, host: str, path: str, body: str) -> Awaitable[Response]:
        _require(path=path, body=body)
        return self.request(Method.POST, host, path, body)

    def put(self, host: str, path: str, body: str) -> Awaitable[Response]:
        _require(path=path, body=body)
        return self.request(Method.PUT, host, path, body)

    def delete(self, host: str, path: str) -> Awaitable[Response]:
        _require(path=path)
        return self.request(Method.DELETE, host, path)

    async def __aenter__(self) -> "Client":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        # Connections never outlive their response; nothing to release here.
        return None


def _require(**arguments: Optional[str]) -> None:
    for name, value in arguments.items():
        if not value:
            raise ArgumentError(name)


_default_client = Client()


def get(host: str, path: str) -> Awaitable[Response]:
    """Send a GET request to ``host`` over HTTPS."""
    return _default_client.get(host, path)


def post(host: str, path: str, body: str) -> Awaitable[Response]:
    """Send a POST request with a JSON string ``body``."""
    return _default_client.post(host, path, body)


def put(host: str, path: str, body: str) -> Awaitable[Response]:
    """Send a PUT request with a JSON string ``body``."""
    return _default_client.put(host, path, body)


def delete(host: str, path: str) -> Awaitable[Response]:
    """Send a DELETE request."""
    return _default_client.delete(host, path)
