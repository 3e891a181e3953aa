"""Supporting document storage."""

from .file_store import ALLOWED_FILE_TYPES, DEFAULT_MAX_SIZE, LocalFileStore

__all__ = [
    "LocalFileStore",
    "ALLOWED_FILE_TYPES",
    "DEFAULT_MAX_SIZE",
]
