from typing import Optional


class JsonHTTPError(Exception):
    """Base exception for the jsonhttp package."""


class ArgumentError(JsonHTTPError, ValueError):
    """Raised when a required argument is empty or missing."""

    def __init__(self, argument: str) -> None:
        super().__init__(f'Argument "{argument}" not specified')
        self.argument = argument


class RequestError(JsonHTTPError):
    """Raised when request building or sending fails."""


class NetworkError(RequestError):
    """Raised when the connection fails before a response head arrives."""


class ResponseError(JsonHTTPError):
    """Raised when response handling fails."""


class ParseError(ResponseError):
    """Raised when a response body is not valid JSON."""


class StreamError(ResponseError):
    """Raised when the response body stream fails mid-transfer."""


class HTTPStatusError(ResponseError):
    """Raised when a response has an HTTP error status (4xx or 5xx)."""

    def __init__(self, status_code: int, message: str, response: Optional[object] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response
