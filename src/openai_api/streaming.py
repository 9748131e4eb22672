"""Event-stream decoding.

Two layers:

- :func:`iter_stream_results` turns raw lines into typed results
  (framing, heartbeats, the ``[DONE]`` sentinel, JSON decoding).
- :func:`decode_stream` wraps it for an ``httpx`` response and stamps
  every result with metadata read once from the response headers.
"""

from __future__ import annotations

import dataclasses
import json
import logging
from collections.abc import AsyncIterable, AsyncIterator, Callable, Mapping
from datetime import timedelta
from typing import Any, Protocol, TypeVar

import httpx

from openai_api.errors import StreamDecodeError
from openai_api.types import ResultMetadata

_logger = logging.getLogger(__name__)

_DATA_PREFIX = "data:"
_DONE = "[DONE]"

# Response headers carrying result metadata
_HDR_ORGANIZATION = "openai-organization"
_HDR_REQUEST_ID = "x-request-id"
_HDR_PROCESSING_MS = "openai-processing-ms"
_HDR_VERSION = "openai-version"
_HDR_MODEL = "openai-model"


class HasMetadata(Protocol):
    """Any result type that can carry response metadata."""

    metadata: ResultMetadata


T = TypeVar("T")
R = TypeVar("R", bound=HasMetadata)


# ---------------------------------------------------------------------------
# Line demultiplexer
# ---------------------------------------------------------------------------

async def iter_stream_results(
    lines: AsyncIterable[str],
    parse: Callable[[dict[str, Any]], T | None],
) -> AsyncIterator[T]:
    """Decode an event stream line by line into results of type ``T``.

    Heartbeat/comment lines (blank or starting with ``:``) are skipped, as
    are lines that decode to JSON ``null`` or for which *parse* returns
    ``None``.  Anything else that fails to decode raises
    :class:`StreamDecodeError`.  The ``[DONE]`` sentinel ends iteration
    without reading further.
    """
    async for raw_line in lines:
        line = raw_line
        if line.startswith(_DATA_PREFIX):
            line = line[len(_DATA_PREFIX):]
        line = line.lstrip()

        if line == _DONE:
            _logger.debug("Stream finished with %s", _DONE)
            return
        if not line or line.startswith(":"):
            continue

        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise StreamDecodeError(f"Malformed stream line: {e}", line=line) from e
        if data is None:
            continue
        if not isinstance(data, dict):
            raise StreamDecodeError(
                f"Expected a JSON object, got {type(data).__name__}", line=line,
            )

        try:
            result = parse(data)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise StreamDecodeError(f"Unexpected stream payload: {e}", line=line) from e
        if result is None:
            continue
        yield result


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------

def metadata_from_headers(headers: Mapping[str, str]) -> ResultMetadata:
    """Read result metadata from response headers.

    Missing or malformed headers leave the corresponding field ``None``;
    this never raises.
    """
    if not isinstance(headers, httpx.Headers):
        headers = httpx.Headers(dict(headers))

    meta = ResultMetadata(
        organization=headers.get(_HDR_ORGANIZATION),
        request_id=headers.get(_HDR_REQUEST_ID),
        api_version=headers.get(_HDR_VERSION),
        model=headers.get(_HDR_MODEL),
    )
    processing = headers.get(_HDR_PROCESSING_MS)
    if processing is not None:
        try:
            meta.processing_time = timedelta(milliseconds=int(processing.strip()))
        except (ValueError, OverflowError):
            _logger.debug("Ignoring unusable %s header: %r", _HDR_PROCESSING_MS, processing)
    return meta


def attach_metadata(result: R, metadata: ResultMetadata) -> R:
    """Give *result* its own copy of *metadata*.

    A result with an empty ``model`` takes the model named in the headers.
    """
    result.metadata = dataclasses.replace(metadata)
    if hasattr(result, "model") and not getattr(result, "model") and metadata.model:
        setattr(result, "model", metadata.model)
    return result


# ---------------------------------------------------------------------------
# Streaming result decoder
# ---------------------------------------------------------------------------

async def decode_stream(
    response: httpx.Response,
    parse: Callable[[dict[str, Any]], R | None],
) -> AsyncIterator[R]:
    """Yield typed results from a streaming response, with metadata attached."""
    metadata = metadata_from_headers(response.headers)
    _logger.debug(
        "Stream opened (request_id=%s, model=%s)", metadata.request_id, metadata.model,
    )
    async for result in iter_stream_results(response.aiter_lines(), parse):
        yield attach_metadata(result, metadata)
