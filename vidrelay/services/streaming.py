"""Serve stored files over HTTP with single byte-range support."""
import logging
import re
from typing import AsyncIterator, Optional

from pydantic import BaseModel
from starlette.responses import PlainTextResponse, Response, StreamingResponse

from vidrelay.storage import FileStore
from vidrelay.utils import run_in_threadpool

_logger = logging.getLogger("vidrelay")

VIDEO_CONTENT_TYPE = "video/mp4"
NOT_FOUND_BODY = "Video not found"

_RANGE_SPEC_RE = re.compile(r"([0-9]*)-([0-9]*)")


class RangeNotSatisfiableError(ValueError):
    """Range header is malformed or lies outside the file."""

    def __init__(self, header: str, size: int, reason: str):
        super().__init__(f"Range {header!r} not satisfiable for size {size}: {reason}")
        self.header = header
        self.size = size
        self.reason = reason


class ByteRange(BaseModel):
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start + 1


def parse_range_header(header: str, size: int) -> ByteRange:
    """
    Parse a ``Range`` header against a file of ``size`` bytes.

    Supports ``bytes=a-b``, ``bytes=a-`` and the suffix form ``bytes=-n``.
    An end past the file is clamped to the last byte. Anything else, including
    multiple ranges, raises ``RangeNotSatisfiableError``.
    """
    unit, sep, spec = header.strip().partition("=")
    if not sep or unit.strip().lower() != "bytes":
        raise RangeNotSatisfiableError(header, size, "unsupported unit")

    spec = spec.strip()
    if "," in spec:
        raise RangeNotSatisfiableError(header, size, "multiple ranges")

    match = _RANGE_SPEC_RE.fullmatch(spec)
    if not match or not any(match.groups()):
        raise RangeNotSatisfiableError(header, size, "malformed range")
    if size == 0:
        raise RangeNotSatisfiableError(header, size, "empty file")

    start_s, end_s = match.groups()
    if not start_s:
        suffix = int(end_s)
        if suffix == 0:
            raise RangeNotSatisfiableError(header, size, "zero-length suffix")
        return ByteRange(start=max(size - suffix, 0), end=size - 1)

    start = int(start_s)
    end = int(end_s) if end_s else size - 1
    if start > end:
        raise RangeNotSatisfiableError(header, size, "start after end")
    if start >= size:
        raise RangeNotSatisfiableError(header, size, "start past end of file")
    return ByteRange(start=start, end=min(end, size - 1))


def not_found_response() -> Response:
    return PlainTextResponse(NOT_FOUND_BODY, status_code=404)


async def _abort_on_read_error(chunks: AsyncIterator[bytes], filename: str) -> AsyncIterator[bytes]:
    # Re-raising drops the connection; the status line is already sent.
    try:
        async for chunk in chunks:
            yield chunk
    except OSError as exc:
        _logger.error("Stream aborted filename=%s error=%s", filename, exc)
        raise


def _media_response(
    store: FileStore,
    filename: str,
    start: int,
    end: int,
    status_code: int,
    headers: dict,
    head_only: bool,
) -> Response:
    if head_only:
        return Response(status_code=status_code, headers=headers, media_type=VIDEO_CONTENT_TYPE)
    return StreamingResponse(
        _abort_on_read_error(store.open_range(filename, start, end), filename),
        status_code=status_code,
        headers=headers,
        media_type=VIDEO_CONTENT_TYPE,
    )


async def stream_file(
    store: FileStore,
    filename: str,
    range_header: Optional[str] = None,
    head_only: bool = False,
) -> Response:
    """
    Build the 200/206/404/416 response for ``/watch/{filename}``.

    With ``head_only`` the status and headers are the same but the file is
    never opened.
    """
    if not await run_in_threadpool(store.exists, filename):
        _logger.info("Stream target missing filename=%s", filename)
        return not_found_response()

    try:
        stat = await run_in_threadpool(store.stat, filename)
    except OSError as exc:
        _logger.info("Stream target vanished filename=%s error=%s", filename, exc)
        return not_found_response()

    size = stat.size
    if not range_header:
        _logger.debug("Streaming full file filename=%s size=%d", filename, size)
        return _media_response(
            store,
            filename,
            0,
            size - 1,
            200,
            {"Content-Length": str(size), "Accept-Ranges": "bytes"},
            head_only,
        )

    try:
        byte_range = parse_range_header(range_header, size)
    except RangeNotSatisfiableError as exc:
        _logger.info("Range not satisfiable filename=%s range=%r reason=%s", filename, range_header, exc.reason)
        return PlainTextResponse(
            "Requested range not satisfiable",
            status_code=416,
            headers={"Content-Range": f"bytes */{size}"},
        )

    _logger.debug(
        "Streaming range filename=%s start=%d end=%d size=%d",
        filename,
        byte_range.start,
        byte_range.end,
        size,
    )
    return _media_response(
        store,
        filename,
        byte_range.start,
        byte_range.end,
        206,
        {
            "Content-Range": f"bytes {byte_range.start}-{byte_range.end}/{size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(byte_range.length),
        },
        head_only,
    )
