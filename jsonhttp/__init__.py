from .client import Client, get, post, put, delete
from .body import collect_json
from .connection import send
from .request import Method, RequestOptions
from .response import Response
from .timeouts import Timeout
from .errors import (
    JsonHTTPError,
    ArgumentError,
    RequestError,
    NetworkError,
    ResponseError,
    ParseError,
    StreamError,
    HTTPStatusError,
)

__all__ = [
    "Client",
    "get",
    "post",
    "put",
    "delete",
    "collect_json",
    "send",
    "Method",
    "RequestOptions",
    "Response",
    "Timeout",
    "JsonHTTPError",
    "ArgumentError",
    "RequestError",
    "NetworkError",
    "ResponseError",
    "ParseError",
    "StreamError",
    "HTTPStatusError",
]


__version__ = "0.1.0"
