"""Upload-related service helpers."""

import hashlib
import io
from typing import BinaryIO

from fastapi import HTTPException, status

UPLOAD_CHUNK_SIZE = 1024 * 1024  # 1 MB


def read_upload_with_limit(source: BinaryIO, max_file_size: int) -> tuple[bytes, str]:
    """Read an upload into memory while enforcing max file size.

    Returns the content and its sha256 hex digest.
    """
    source.seek(0)
    total_bytes = 0
    digest = hashlib.sha256()
    buffer = io.BytesIO()

    while True:
        chunk = source.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break

        total_bytes += len(chunk)
        if total_bytes > max_file_size:
            raise HTTPException(
                status_code=status.HTTP_413_CONTENT_TOO_LARGE,
                detail=(
                    f"File too large: {total_bytes:,} bytes "
                    f"(max {max_file_size:,} bytes)"
                ),
            )

        buffer.write(chunk)
        digest.update(chunk)

    return buffer.getvalue(), digest.hexdigest()
