"""
Local storage for claim supporting documents.

Files are written under ``<base_dir>/<category>/`` with a random name and
addressed by a web path (``/uploads/<category>/<name>``). The workflow
only ever sees the resulting FileReference.
"""

import logging
import uuid
from pathlib import Path
from typing import Dict, Optional, Tuple

from ..claims.errors import FileStorageError
from ..claims.schema import FileReference

logger = logging.getLogger(__name__)

ALLOWED_FILE_TYPES: Dict[str, Tuple[str, ...]] = {
    ".pdf": ("application/pdf",),
    ".docx": ("application/vnd.openxmlformats-officedocument.wordprocessingml.document",),
    ".xlsx": ("application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",),
    ".jpg": ("image/jpeg",),
    ".jpeg": ("image/jpeg",),
    ".png": ("image/png",),
}

DEFAULT_MAX_SIZE = 10 * 1024 * 1024  # 10MB


class LocalFileStore:
    """
    Stores uploaded documents on the local filesystem.

    Usage:
        store = LocalFileStore(Path("uploads"))
        ref = store.store(data, "timesheet.pdf", content_type="application/pdf")
        store.delete(ref.file_path)
    """

    def __init__(
        self,
        base_dir: Path,
        max_size_bytes: int = DEFAULT_MAX_SIZE,
        url_prefix: str = "/uploads",
    ):
        self.base_dir = Path(base_dir)
        self.max_size_bytes = max_size_bytes
        self.url_prefix = url_prefix.rstrip("/")

    def store(
        self,
        data: bytes,
        suggested_name: str,
        category: str = "claims",
        content_type: Optional[str] = None,
    ) -> FileReference:
        """
        Validate and write a document.

        Args:
            data: File contents
            suggested_name: Name the file was uploaded as
            category: Sub-directory to store under
            content_type: MIME type reported by the client, checked against the extension

        Returns:
            FileReference pointing at the stored file

        Raises:
            FileStorageError: if the file is empty, too large, of a disallowed
                type, or cannot be written
        """
        if not data:
            raise FileStorageError("Uploaded file is empty")

        if len(data) > self.max_size_bytes:
            raise FileStorageError(
                f"File size exceeds the maximum limit of {self.max_size_bytes // 1024 // 1024}MB"
            )

        extension = Path(suggested_name).suffix.lower()
        allowed_types = ALLOWED_FILE_TYPES.get(extension)
        if allowed_types is None:
            raise FileStorageError("Invalid file type. Allowed types: PDF, DOCX, XLSX, JPG, JPEG, PNG")

        if content_type and content_type not in allowed_types:
            raise FileStorageError("File content type doesn't match the file extension")

        if not category or Path(category).name != category:
            raise FileStorageError(f"Invalid upload category: {category!r}")

        stored_name = f"{uuid.uuid4()}{extension}"
        target_dir = self.base_dir / category
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            (target_dir / stored_name).write_bytes(data)
        except OSError as e:
            logger.error(f"Error storing file {suggested_name}: {e}")
            raise FileStorageError("An error occurred while uploading the file") from e

        logger.info(f"File uploaded successfully: {suggested_name} -> {stored_name}")
        return FileReference(
            file_name=Path(suggested_name).name,
            stored_name=stored_name,
            file_path=f"{self.url_prefix}/{category}/{stored_name}",
            size_bytes=len(data),
        )

    def resolve(self, file_path: str) -> Path:
        """Map a stored web path back to its location on disk."""
        relative = file_path
        if relative.startswith(self.url_prefix + "/"):
            relative = relative[len(self.url_prefix) + 1:]
        resolved = (self.base_dir / relative.lstrip("/")).resolve()
        if self.base_dir.resolve() not in resolved.parents:
            raise FileStorageError(f"Path is outside the upload directory: {file_path}")
        return resolved

    def delete(self, file_path: str) -> bool:
        """
        Remove a stored file.

        Returns:
            True if a file was deleted, False if there was nothing to delete
        """
        try:
            path = self.resolve(file_path)
        except FileStorageError as e:
            logger.warning(e.message)
            return False

        if not path.is_file():
            return False
        try:
            path.unlink()
        except OSError as e:
            logger.error(f"Error deleting file {file_path}: {e}")
            return False
        logger.info(f"File deleted: {file_path}")
        return True
