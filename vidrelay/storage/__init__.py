from .file_store import (
    DeleteOutcome,
    FileStat,
    FileStore,
    InvalidFilenameError,
    sanitize_filename,
)

__all__ = [
    "DeleteOutcome",
    "FileStat",
    "FileStore",
    "InvalidFilenameError",
    "sanitize_filename",
]
