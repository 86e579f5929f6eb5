import asyncio
import ssl
from functools import lru_cache
from typing import AsyncIterator, List, Optional, Tuple, Type

import h11

from .errors import JsonHTTPError, NetworkError, RequestError, StreamError
from .logging import get_logger
from .request import RequestOptions
from .response import Response
from .timeouts import Timeout

READ_BUFFER_SIZE = 65536

# Final statuses that never carry a body.
NO_BODY_STATUSES = frozenset({204, 304})

logger = get_logger("connection")


@lru_cache(maxsize=2)
def _get_ssl_context(verify: bool = True) -> ssl.SSLContext:
    """Get or create the cached default SSL context."""
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class Connection:
    """
    A single-use HTTP/1.1 exchange built on asyncio streams + h11.

    One request is written, one response is read, then the socket is closed.
    Nothing is pooled or reused.
    """

    def __init__(
        self,
        addr: Tuple[str, int],
        use_ssl: bool = True,
        ssl_context: Optional[ssl.SSLContext] = None,
        timeout: Optional[Timeout] = None,
        verify: bool = True,
    ) -> None:
        self.addr = addr
        self.use_ssl = use_ssl
        if use_ssl:
            self.ssl_context = ssl_context or _get_ssl_context(verify)
        else:
            self.ssl_context = None
        self.timeout = Timeout.from_value(timeout)
        self.reader: asyncio.StreamReader
        self.writer: asyncio.StreamWriter
        self.h11_conn = h11.Connection(h11.CLIENT)
        self.closed = False
        self._connected = False

    async def connect(self) -> None:
        if self._connected:
            return
        self.reader, self.writer = await asyncio.wait_for(
            asyncio.open_connection(self.addr[0], self.addr[1], ssl=self.ssl_context),
            timeout=self.timeout.connect,
        )
        self._connected = True

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._connected:
            self._connected = False
            self.writer.close()
            try:
                await self.writer.wait_closed()
            except OSError:
                # The peer may already have dropped the socket.
                pass

    def _host_header(self) -> str:
        host, port = self.addr
        if ":" in host:
            host = f"[{host}]"
        default_port = 443 if self.use_ssl else 80
        if port != default_port:
            return f"{host}:{port}"
        return host

    async def _send_event(self, event: h11.Event) -> None:
        data = self.h11_conn.send(event)
        if data:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.timeout.write)

    async def send_request(self, options: RequestOptions) -> Response:
        """Write the request and resolve once the response head has arrived."""
        if self.closed:
            raise RequestError("Connection already closed")
        try:
            return await asyncio.wait_for(self._exchange(options), timeout=self.timeout.total)
        except JsonHTTPError:
            await self.close()
            raise
        except asyncio.TimeoutError as exc:
            await self.close()
            raise NetworkError(f"Timed out waiting for {options.host}") from exc
        except h11.LocalProtocolError as exc:
            await self.close()
            raise RequestError(f"Cannot send request to {options.host}: {exc}") from exc
        except OSError as exc:
            await self.close()
            raise NetworkError(f"Request to {options.host} failed: {exc}") from exc
        except BaseException:
            await self.close()
            raise

    def _build_head(self, options: RequestOptions) -> h11.Request:
        try:
            target = options.path.encode("ascii")
        except UnicodeEncodeError as exc:
            raise RequestError(f"Request path contains unescaped characters: {options.path!r}") from exc
        headers: List[Tuple[str, str]] = [("Host", self._host_header())]
        headers.extend(options.headers.items())
        try:
            encoded = [(k.encode("ascii"), v.encode("ascii")) for k, v in headers]
        except UnicodeEncodeError as exc:
            raise RequestError(f"Request headers contain non-ASCII characters: {exc}") from exc
        return h11.Request(
            method=options.method.value.encode("ascii"),
            target=target,
            headers=encoded,
        )

    async def _exchange(self, options: RequestOptions) -> Response:
        head = self._build_head(options)
        await self.connect()
        await self._send_event(head)
        body_bytes = options.content_bytes()
        if body_bytes:
            await self._send_event(h11.Data(data=body_bytes))
        await self._send_event(h11.EndOfMessage())
        return await self._read_response(options)

    async def _read_event(self, error_cls: Type[JsonHTTPError]) -> h11.Event:
        while True:
            try:
                event = self.h11_conn.next_event()
            except h11.RemoteProtocolError as exc:
                raise error_cls(f"Invalid response from {self.addr[0]}: {exc}") from exc
            if event is h11.NEED_DATA:
                try:
                    chunk = await asyncio.wait_for(self.reader.read(READ_BUFFER_SIZE), timeout=self.timeout.read)
                except asyncio.TimeoutError as exc:
                    raise error_cls("Read timeout") from exc
                except OSError as exc:
                    raise error_cls(f"Connection to {self.addr[0]} failed: {exc}") from exc
                # An empty read marks EOF; h11 decides whether that ends the body.
                self.h11_conn.receive_data(chunk)
                continue
            return event

    async def _read_response(self, options: RequestOptions) -> Response:
        while True:
            event = await self._read_event(NetworkError)
            if isinstance(event, h11.Response):
                break
            if isinstance(event, h11.InformationalResponse):
                continue
            if isinstance(event, h11.ConnectionClosed):
                raise NetworkError("Connection closed before response")

        decoded_headers = {}
        for k, v in event.headers:
            try:
                decoded_headers[k.decode("ascii")] = v.decode("ascii")
            except UnicodeDecodeError:
                decoded_headers[k.decode("utf-8", errors="replace")] = v.decode("utf-8", errors="replace")

        logger.debug("%s %s%s -> %d", options.method.value, options.host, options.path, event.status_code)
        body_iter = None
        if event.status_code in NO_BODY_STATUSES:
            await self.close()
        else:
            body_iter = self._body_iter()
        reason = event.reason
        return Response(
            status_code=event.status_code,
            headers=decoded_headers,
            reason=reason.decode("ascii", errors="replace") if isinstance(reason, (bytes, bytearray)) else str(reason),
            request=options,
            connection=self,
            _aiter=body_iter,
            _release=self.close,
        )

    async def _body_iter(self) -> AsyncIterator[bytes]:
        while True:
            event = await self._read_event(StreamError)
            if isinstance(event, h11.Data):
                yield bytes(event.data)
            elif isinstance(event, h11.EndOfMessage):
                break
            elif isinstance(event, h11.ConnectionClosed):
                raise StreamError("Connection closed before end of body")


async def send(
    options: RequestOptions,
    *,
    port: Optional[int] = None,
    use_ssl: bool = True,
    verify: bool = True,
    ssl_context: Optional[ssl.SSLContext] = None,
    timeout: Optional[Timeout] = None,
) -> Response:
    """
    Perform one exchange for ``options`` and return the response once its head
    has arrived. Connection failures raise :class:`NetworkError`.
    """
    if port is None:
        port = 443 if use_ssl else 80
    conn = Connection(
        (options.host, port),
        use_ssl=use_ssl,
        ssl_context=ssl_context,
        timeout=timeout,
        verify=verify,
    )
    return await conn.send_request(options)
