import codecs
import json
import logging
from typing import Any, List, Optional

from .errors import ParseError
from .logging import get_logger
from .response import Response


def _incremental_decoder(encoding: str) -> codecs.IncrementalDecoder:
    try:
        return codecs.getincrementaldecoder(encoding)()
    except LookupError:
        return codecs.getincrementaldecoder("utf-8")()


async def collect_json(response: Response, logger: Optional[logging.Logger] = None) -> Any:
    """
    Drain ``response`` and parse the buffered body as JSON.

    Chunks are decoded incrementally in arrival order, so multi-byte
    characters split across chunks come out intact. Parsing starts only once
    the stream has ended.

    A response without a body stream resolves to ``None``. A body that ends
    after zero bytes is not valid JSON and raises :class:`ParseError`, as does
    any other malformed or undecodable payload. If the stream itself fails,
    that exception is re-raised unchanged.
    """
    logger = logger or get_logger("body")
    if not response.has_body:
        return None

    decoder = _incremental_decoder(response.encoding)
    parts: List[str] = []
    stream = response.aiter_bytes()
    try:
        async for chunk in stream:
            logger.debug("received %d bytes", len(chunk))
            parts.append(decoder.decode(chunk))
        parts.append(decoder.decode(b"", final=True))
    except UnicodeDecodeError as exc:
        raise ParseError(f"Response body is not valid {response.encoding}: {exc}") from exc
    except Exception as exc:
        logger.warning("response stream failed: %s", exc)
        raise
    finally:
        await stream.aclose()

    text = "".join(parts)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"Failed to parse JSON: {e}") from e
