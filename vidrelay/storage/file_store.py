"""Local directory of media files, addressed by filename."""
import logging
from enum import Enum
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import IO, AsyncIterator, List, Union

from pydantic import BaseModel

from vidrelay.utils import run_in_threadpool, strip_unsafe_chars

_logger = logging.getLogger("vidrelay")

DEFAULT_CHUNK_SIZE = 512 * 1024
# Leaves room for ".mp4" plus the temp-file suffix under the 255-byte NAME_MAX.
MAX_TITLE_BYTES = 200
MAX_FILENAME_BYTES = 255
MEDIA_SUFFIX = ".mp4"
PARTIAL_SUFFIX = ".part"


class InvalidFilenameError(ValueError):
    """Filename is unsafe or resolves outside the store root."""


class DeleteOutcome(str, Enum):
    deleted = "deleted"
    not_found = "not_found"
    error = "error"


class FileStat(BaseModel):
    size: int
    mtime: float


def sanitize_filename(title: str) -> str:
    """Turn an upstream title into a stored filename (without extension)."""
    value = strip_unsafe_chars(title).replace("\x00", "")
    # Cut on bytes; a multi-byte character split at the edge is dropped.
    encoded = value.encode("utf-8", errors="ignore")[:MAX_TITLE_BYTES]
    value = encoded.decode("utf-8", errors="ignore").strip()
    return value or "video"


def _is_safe_filename(filename: str) -> bool:
    if not filename or len(filename.encode("utf-8", "surrogatepass")) > MAX_FILENAME_BYTES:
        return False
    if "/" in filename or "\\" in filename or "\x00" in filename:
        return False
    if filename in {".", ".."}:
        return False
    return True


class FileStore:
    """
    Flat directory of media files.

    Methods other than ``open_range`` block on the filesystem; async callers
    run them through ``run_in_threadpool``.
    """

    def __init__(self, root: Union[str, Path], chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.root = Path(root).resolve(strict=False)
        self.root.mkdir(parents=True, exist_ok=True)
        self.chunk_size = chunk_size
        _logger.info("File store ready root=%s chunk_size=%d", self.root, chunk_size)

    def resolve(self, filename: str) -> Path:
        if not _is_safe_filename(filename):
            _logger.warning("Rejected unsafe filename=%r", filename)
            raise InvalidFilenameError(f"Invalid filename: {filename!r}")

        path = (self.root / filename).resolve(strict=False)
        if path == self.root or not path.is_relative_to(self.root):
            _logger.warning("Rejected filename outside root filename=%r path=%s root=%s", filename, path, self.root)
            raise InvalidFilenameError(f"Filename escapes store root: {filename!r}")
        return path

    def exists(self, filename: str) -> bool:
        try:
            return self.resolve(filename).is_file()
        except InvalidFilenameError:
            return False

    def stat(self, filename: str) -> FileStat:
        st = self.resolve(filename).stat()
        return FileStat(size=st.st_size, mtime=st.st_mtime)

    def list_files(self) -> List[str]:
        return sorted(p.name for p in self.root.iterdir() if p.is_file())

    def entry_path(self, name: str) -> Path:
        """
        Path of a listed directory entry, symlinks left unresolved.

        For names that came from ``list_files`` but that ``resolve`` refuses,
        such as a backslash in the name or a symlink pointing out of the root.
        """
        path = self.root / name
        if name in {"", ".", ".."} or path.parent != self.root:
            raise InvalidFilenameError(f"Not a store entry: {name!r}")
        return path

    def new_path(self, title: str) -> Path:
        return self.resolve(sanitize_filename(title) + MEDIA_SUFFIX)

    def temp_file(self, final_path: Path) -> IO[bytes]:
        """
        Create a private ``<name>.<random>.part`` file beside ``final_path``.

        Each call gets its own file. The caller closes it and renames or
        deletes it.
        """
        return NamedTemporaryFile(
            dir=self.root,
            prefix=final_path.name + ".",
            suffix=PARTIAL_SUFFIX,
            delete=False,
        )

    def _target_path(self, target: Union[str, Path]) -> Path:
        if isinstance(target, Path):
            path = target.resolve(strict=False)
            if path == self.root or not path.is_relative_to(self.root):
                raise InvalidFilenameError(f"Path outside store root: {target}")
            return path
        return self.resolve(target)

    def delete(self, target: Union[str, Path]) -> DeleteOutcome:
        """Delete a stored file; never raises."""
        try:
            path = self._target_path(target)
        except InvalidFilenameError as exc:
            _logger.error("Refusing to delete target=%s error=%s", target, exc)
            return DeleteOutcome.error

        try:
            path.unlink()
        except FileNotFoundError:
            _logger.info("File already gone path=%s", path)
            return DeleteOutcome.not_found
        except OSError as exc:
            _logger.error("Failed to delete file path=%s error=%s", path, exc)
            return DeleteOutcome.error

        _logger.info("Deleted file path=%s", path)
        return DeleteOutcome.deleted

    async def open_range(self, filename: str, start: int, end: int) -> AsyncIterator[bytes]:
        """Yield bytes ``start..end`` inclusive, one chunk per consumer pull."""
        path = self.resolve(filename)
        fh = await run_in_threadpool(path.open, "rb")
        try:
            await run_in_threadpool(fh.seek, start)
            remaining = end - start + 1
            while remaining > 0:
                chunk = await run_in_threadpool(fh.read, min(self.chunk_size, remaining))
                if not chunk:
                    raise OSError(f"Unexpected end of file path={path} missing_bytes={remaining}")
                remaining -= len(chunk)
                yield chunk
        finally:
            fh.close()
