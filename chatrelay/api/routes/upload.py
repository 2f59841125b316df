# chatrelay/api/routes/upload.py

import logging
from typing import Optional

from fastapi import APIRouter, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from chatrelay.core import state
from chatrelay.models.models import UploadResult
from chatrelay.services.upload_gateway import GENERIC_ERROR, NO_FILE, UploadRejected

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# MEDIA UPLOAD ENDPOINT
# ============================================================================

@router.post("/upload", response_model=UploadResult)
async def upload_media(
    media: Optional[UploadFile] = File(None),
    file: Optional[UploadFile] = File(None),
):
    """
    Accept one media file and return where it can be fetched.

    Flow:
        1. Client POSTs multipart form data (field "media", "file" also accepted)
        2. Gateway validates type + size and writes it under /uploads/
        3. Client announces the returned url with a "media" websocket event

    Returns:
        UploadResult: {"url": "/uploads/...", "mimetype": "...", "name": "..."}

    Errors:
        400 {"error": "No file uploaded"}
        400 {"error": "File type not allowed"}
        413 {"error": "File too large (max 5MB)"}
        400 {"error": "Invalid upload"} for anything else; details are only logged
    """
    upload = media or file
    gateway = state.upload_gateway

    try:
        if upload is None:
            raise UploadRejected(NO_FILE)

        # Read at most one byte past the cap; that is enough to reject it
        data = await upload.read(gateway.max_bytes + 1)
        # Disk write runs in a worker thread so sockets keep flowing meanwhile
        return await run_in_threadpool(gateway.store, data, upload.content_type, upload.filename)

    except UploadRejected as e:
        logger.info("Upload rejected: %s", e.message)
        return JSONResponse(status_code=e.status_code, content={"error": e.message})
    except Exception:
        logger.exception("Upload failed")
        return JSONResponse(status_code=400, content={"error": GENERIC_ERROR})
    finally:
        if upload is not None:
            await upload.close()
