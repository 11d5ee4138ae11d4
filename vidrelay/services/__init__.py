from .downloader import DownloadError, MediaDownloader
from .publisher import TelegramPublisher
from .resolver import (
    AcquisitionError,
    MediaResolver,
    ResolvedMedia,
    ResolveError,
    parse_resolver_payload,
)
from .streaming import (
    ByteRange,
    RangeNotSatisfiableError,
    not_found_response,
    parse_range_header,
    stream_file,
)

__all__ = [
    "AcquisitionError",
    "ByteRange",
    "DownloadError",
    "MediaDownloader",
    "MediaResolver",
    "RangeNotSatisfiableError",
    "ResolveError",
    "ResolvedMedia",
    "TelegramPublisher",
    "not_found_response",
    "parse_range_header",
    "parse_resolver_payload",
    "stream_file",
]
