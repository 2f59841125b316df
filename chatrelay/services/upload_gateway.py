# chatrelay/services/upload_gateway.py

from __future__ import annotations

import logging
import mimetypes
import os
import re
import secrets
import time
from typing import Iterable, Optional

from chatrelay.models.models import UploadResult

logger = logging.getLogger(__name__)

NO_FILE = "No file uploaded"
TYPE_NOT_ALLOWED = "File type not allowed"
GENERIC_ERROR = "Invalid upload"

_EXT_RE = re.compile(r"^\.[a-z0-9]{1,10}$")


class UploadRejected(Exception):
    """An upload refused for a reason that is safe to show the client."""

    def __init__(self, message: str, status_code: int = 400) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def safe_extension(filename: Optional[str], mimetype: str) -> str:
    """
    Extension for the stored file.

    Taken from the client filename only if it is short and alphanumeric,
    otherwise guessed from the MIME type. Never carries path components.
    """
    ext = os.path.splitext(os.path.basename(filename or ""))[1].lower()
    if _EXT_RE.match(ext):
        return ext
    return mimetypes.guess_extension(mimetype) or ""


# ============================================================================
# UPLOAD GATEWAY
# ============================================================================

class UploadGateway:
    """
    Accepts one file, validates it and writes it under the upload directory.

    Validation order:
        1. Something was uploaded (non-empty)
        2. Declared MIME type is on the allow-list
        3. Size does not exceed the cap

    The stored name is "<ms timestamp>-<random hex><ext>". Nothing of the
    client's filename survives except a sanitized extension.

    Usage:
        gateway = UploadGateway("uploads", "/uploads/", 5 * 1024 * 1024, ALLOWED)
        result = gateway.store(data, "image/png", "cat.png")
        result.url  # "/uploads/1732999999999-3fa9c2d1e0b4a7f6.png"
    """

    def __init__(
        self,
        upload_dir: str,
        url_prefix: str,
        max_bytes: int,
        allowed_types: Iterable[str],
    ) -> None:
        self.upload_dir = upload_dir
        self.url_prefix = url_prefix
        self.max_bytes = max_bytes
        self.allowed_types = frozenset(allowed_types)

    @property
    def too_large_message(self) -> str:
        return f"File too large (max {self.max_bytes // (1024 * 1024)}MB)"

    def validate(self, data: Optional[bytes], mimetype: Optional[str]) -> None:
        """Raise UploadRejected if the upload cannot be stored."""
        if not data:
            raise UploadRejected(NO_FILE)
        if mimetype not in self.allowed_types:
            raise UploadRejected(TYPE_NOT_ALLOWED)
        if len(data) > self.max_bytes:
            raise UploadRejected(self.too_large_message, status_code=413)

    def store(self, data: Optional[bytes], mimetype: Optional[str], filename: Optional[str] = None) -> UploadResult:
        """
        Validate and persist an upload.

        Returns:
            UploadResult: server-relative url, mimetype, original name

        Raises:
            UploadRejected: nothing is written to disk in that case
        """
        self.validate(data, mimetype)

        stored_name = f"{int(time.time() * 1000)}-{secrets.token_hex(8)}{safe_extension(filename, mimetype)}"
        os.makedirs(self.upload_dir, exist_ok=True)
        with open(os.path.join(self.upload_dir, stored_name), "xb") as f:
            f.write(data)

        logger.info("✓ Stored upload %s (%s, %d bytes)", stored_name, mimetype, len(data))
        return UploadResult(
            url=f"{self.url_prefix}{stored_name}",
            mimetype=mimetype,
            name=os.path.basename(filename or ""),
        )
