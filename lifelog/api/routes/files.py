"""
File Proxy API Routes

Forwards requests for data exports to the remote document host so browser
clients avoid cross-origin restrictions.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response

from lifelog.services.file_proxy import FileFetchError, fetch_file

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/{file_id}")
async def get_file(file_id: str) -> Response:
    """
    Return the raw contents of a remote file as text.

    Timeouts answer 504, upstream HTTP errors pass their status through and
    any other failure answers 500.
    """
    try:
        body = await run_in_threadpool(fetch_file, file_id)
    except FileFetchError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.exception(f"Failed to proxy file {file_id}")
        raise HTTPException(status_code=500, detail=str(e))

    return Response(content=body, media_type="text/plain")
