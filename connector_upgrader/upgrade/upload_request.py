"""
Upload request construction.

Turns a package archive on disk into the UploadRequest an upload handler
expects: a temporary copy plus the name, MIME type and size of the file.
"""

import mimetypes
import os
import shutil
import tempfile
from pathlib import Path

from loguru import logger

from connector_upgrader.core.constants import UPLOAD_TEMP_PREFIX
from connector_upgrader.core.exceptions import UploadError
from connector_upgrader.core.models import UploadRequest

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(path: Path) -> str:
    content_type, _ = mimetypes.guess_type(path.name)
    return content_type or DEFAULT_CONTENT_TYPE


def build_upload_request(package_path: Path) -> UploadRequest:
    """
    Copy the package to a temp file and describe it as an upload.

    The upload handler owns the temp copy afterwards; the original archive is
    never moved or modified.

    Args:
        package_path: Package archive to upload

    Returns:
        UploadRequest pointing at the temp copy

    Raises:
        UploadError: If the temp copy cannot be made
    """
    package_path = Path(package_path)
    fd, temp_name = tempfile.mkstemp(prefix=UPLOAD_TEMP_PREFIX)
    os.close(fd)
    temp_path = Path(temp_name)

    try:
        shutil.copyfile(package_path, temp_path)
        size = temp_path.stat().st_size
    except OSError as e:
        logger.error(f"❌ Copy of {package_path} to {temp_path} failed: {e}")
        temp_path.unlink(missing_ok=True)
        raise UploadError("Failed to copy package file to temp file.") from e

    return UploadRequest(
        name=package_path.name,
        content_type=guess_content_type(package_path),
        temp_path=temp_path,
        size=size,
        source_path=package_path,
    )
