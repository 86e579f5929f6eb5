import re
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional

from .request import RequestOptions
from .errors import HTTPStatusError

_CHARSET_REGEX = re.compile(r'charset=([^;,\s]+)', re.IGNORECASE)


@dataclass
class Response:
    """
    Streaming handle for one HTTP response.

    The body is still on the wire when the response is handed out; drain it
    with :meth:`aiter_bytes` or :func:`jsonhttp.body.collect_json`, or
    :meth:`close` the response to abandon it.
    """
    status_code: int
    headers: Dict[str, str]
    reason: Optional[str] = None
    request: Optional[RequestOptions] = None
    connection: Any = None
    _aiter: Optional[AsyncIterator[bytes]] = None
    _release: Optional[Callable[[], Awaitable[None]]] = None

    _json_cache: Optional[Any] = field(default=None, init=False, repr=False)
    _json_loaded: bool = field(default=False, init=False, repr=False)
    _json_error: Optional[BaseException] = field(default=None, init=False, repr=False)
    _header_cache: Optional[Dict[str, str]] = field(default=None, init=False, repr=False)

    def _get_header(self, name: str, default: str = "") -> str:
        if self._header_cache is None:
            self._header_cache = {k.lower(): v for k, v in self.headers.items()}
        return self._header_cache.get(name.lower(), default)

    @property
    def ok(self) -> bool:
        """True if status code is in the 200-299 range."""
        return 200 <= self.status_code < 300

    @property
    def has_body(self) -> bool:
        """False when the response carries no body stream at all."""
        return self._aiter is not None

    @property
    def content_type(self) -> Optional[str]:
        return self._get_header("Content-Type") or None

    @property
    def encoding(self) -> str:
        """Charset from the Content-Type header, utf-8 when absent."""
        content_type = self._get_header("Content-Type", "")
        match = _CHARSET_REGEX.search(content_type)
        if match:
            charset_value = match.group(1).strip('"\'').strip()
            if charset_value:
                return charset_value
        return "utf-8"

    async def aiter_bytes(self) -> AsyncIterator[bytes]:
        """
        Yield body chunks in the order they arrive.

        The connection is released once the stream ends or fails.
        """
        if self._aiter is None:
            return
        try:
            async for chunk in self._aiter:
                if chunk:
                    yield chunk
        finally:
            await self.close()

    async def json(self) -> Any:
        """
        Buffer the whole body and parse it as JSON.

        The body can only be read once, so the result is cached, and so is the
        error when reading or parsing fails.
        """
        if self._json_error is not None:
            raise self._json_error
        if self._json_loaded:
            return self._json_cache
        from .body import collect_json

        try:
            self._json_cache = await collect_json(self)
        except Exception as exc:
            self._json_error = exc
            raise
        self._json_loaded = True
        return self._json_cache

    def raise_for_status(self) -> None:
        if 400 <= self.status_code < 600:
            reason = self.reason or "Unknown error"
            raise HTTPStatusError(
                self.status_code,
                f"HTTP {self.status_code}: {reason}",
                self
            )

    async def close(self) -> None:
        if self._release:
            release, self._release = self._release, None
            await release()

    async def __aenter__(self) -> "Response":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def __repr__(self) -> str:
        host = self.request.host if self.request else None
        path = self.request.path if self.request else None
        return f"<Response [{self.status_code}] host={host!r} path={path!r} reason={self.reason!r}>"
