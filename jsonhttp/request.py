from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Union

JSON_CONTENT_TYPE = "application/json; charset=utf8"


class Method(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def coerce(cls, value: Union["Method", str, None]) -> "Method":
        if value is None:
            return cls.GET
        if isinstance(value, cls):
            return value
        return cls(value.upper())


def normalize_path(path: str) -> str:
    """Make sure the path starts with exactly the one leading "/" it needs."""
    if not path.startswith("/"):
        return "/" + path
    return path


@dataclass
class RequestOptions:
    """
    Everything needed to put one JSON request on the wire.

    Built fresh for every call. The JSON ``Accept``/``Content-Type`` pair is
    always present, and ``Content-Length`` carries the UTF-8 byte length of
    the body whenever there is one.
    """

    host: str
    path: str
    method: Method = Method.GET
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    _content_cache: Optional[bytes] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self.method = Method.coerce(self.method)
        self.path = normalize_path(self.path)
        self._normalize_headers()

    def _normalize_headers(self) -> None:
        lower_keys = {k.lower() for k in self.headers}
        if "accept" not in lower_keys:
            self.headers["Accept"] = "application/json"
        if "content-type" not in lower_keys:
            self.headers["Content-Type"] = JSON_CONTENT_TYPE
        if self.body and "content-length" not in lower_keys:
            self.headers["Content-Length"] = str(len(self.content_bytes()))

    def content_bytes(self) -> bytes:
        if self._content_cache is not None:
            return self._content_cache
        if self.body is None:
            self._content_cache = b""
        else:
            self._content_cache = self.body.encode("utf-8")
        return self._content_cache
