"""Saving uploaded files into the attachments directory."""

import logging
from pathlib import Path

from textpod.exceptions import ErrorCode, StorageError, ValidationError
from textpod.utils import unique_path

logger = logging.getLogger(__name__)


def save_upload(attachments_dir: Path, filename: str, data: bytes) -> Path:
    """Write ``data`` under ``attachments_dir`` without clobbering existing files.

    Only the final component of ``filename`` is used. If the name is taken,
    ``-1``, ``-2``, ... is appended to the stem.

    Raises:
        ValidationError: If no usable filename was given
        StorageError: If the file cannot be written
    """
    name = Path(filename or "").name
    if not name or name in (".", ".."):
        raise ValidationError(
            "Upload has no filename", field="filename", code=ErrorCode.UPLOAD_INVALID
        )

    logger.info(f"Uploading file: {name}")
    path = unique_path(attachments_dir / name)
    try:
        path.write_bytes(data)
    except OSError as e:
        raise StorageError(
            f"Failed to save upload {name}",
            operation="upload",
            path=str(path),
            original_error=e,
        ) from e

    logger.info(f"File saved as {path}")
    return path
