# =============================================================================
# Document Store — Uploaded PDFs on Disk
# =============================================================================
#
# Stores raw uploads under a generated, collision-resistant filename:
#
#   {epoch_ms}-{12 hex chars}-{sanitised original name}
#
# The generated filename doubles as the public file identifier used by the
# summary/flashcards endpoints and the /uploads static route.
#
# Files are opened with exclusive create ("xb"), so two concurrent uploads
# can never write to the same path even if the random suffix collided.
# =============================================================================

from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from pdfmate.errors import DocumentNotFoundError, InputError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")
_DEFAULT_NAME = "document.pdf"
_MAX_NAME_LENGTH = 200
_MAX_CREATE_ATTEMPTS = 5


@dataclass(frozen=True)
class UploadedFile:
    """A stored upload. Immutable once created."""

    id: str
    original_name: str
    storage_path: Path
    size_bytes: int
    uploaded_at: datetime


def sanitise_filename(original_name: str) -> str:
    """
    Reduce an uploaded filename to a safe basename.

    Directory components are dropped (both / and \\ separators) and any
    character outside [A-Za-z0-9._-] becomes "_".
    """
    basename = re.split(r"[\\/]", original_name or "")[-1]
    cleaned = _UNSAFE_CHARS.sub("_", basename).strip("._")
    if not cleaned:
        return _DEFAULT_NAME
    return cleaned[-_MAX_NAME_LENGTH:]


class DocumentStore:
    """Filesystem location holding uploaded raw files."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    def ensure_root(self) -> Path:
        """Create the upload directory if needed (idempotent)."""
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def save(self, raw_bytes: bytes, original_name: str) -> UploadedFile:
        """
        Write an upload to disk under a freshly generated filename.

        Raises:
            InputError: If the upload is empty.
            OSError: If the upload directory is not writable.
        """
        if not raw_bytes:
            raise InputError("Uploaded file is empty.")

        root = self.ensure_root()
        safe_name = sanitise_filename(original_name)

        for _ in range(_MAX_CREATE_ATTEMPTS):
            file_id = self._generate_id(safe_name)
            path = root / file_id
            try:
                with path.open("xb") as fh:
                    fh.write(raw_bytes)
            except FileExistsError:
                logger.warning("Storage name collision on %s, regenerating", file_id)
                continue

            logger.info(
                "Stored upload '%s' (%d bytes) as %s",
                original_name, len(raw_bytes), path,
            )
            return UploadedFile(
                id=file_id,
                original_name=original_name or safe_name,
                storage_path=path,
                size_bytes=len(raw_bytes),
                uploaded_at=datetime.now(UTC),
            )

        raise FileExistsError(
            f"Could not allocate a unique storage name for '{original_name}'"
        )

    def resolve(self, file_id: str) -> Path:
        """
        Map a public file id back to its stored path.

        Raises:
            DocumentNotFoundError: If the id is malformed or no such file exists.
        """
        if (
            not file_id
            or file_id in (".", "..")
            or "/" in file_id
            or "\\" in file_id
        ):
            raise DocumentNotFoundError(f"PDF not found: {file_id!r}")

        path = self._root / file_id
        if not path.is_file():
            raise DocumentNotFoundError(f"PDF not found: {file_id!r}")
        return path

    @staticmethod
    def _generate_id(safe_name: str) -> str:
        timestamp_ms = time.time_ns() // 1_000_000
        return f"{timestamp_ms}-{secrets.token_hex(6)}-{safe_name}"
