"""
Remote File Fetch

Downloads a data export from the remote document host by its opaque file
identifier. A single attempt is made; failures carry the HTTP status the
proxy route should answer with.
"""

from __future__ import annotations

import logging
import socket
import urllib.error
import urllib.parse
import urllib.request

from lifelog import config

logger = logging.getLogger(__name__)


class FileFetchError(Exception):
    """Fetch failure mapped to an HTTP status code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def build_url(file_id: str) -> str:
    return config.REMOTE_FILE_URL.format(file_id=urllib.parse.quote(file_id, safe=""))


def _is_timeout(error: BaseException) -> bool:
    if isinstance(error, (socket.timeout, TimeoutError)):
        return True
    reason = getattr(error, "reason", None)
    return isinstance(reason, (socket.timeout, TimeoutError))


def fetch_file(
    file_id: str,
    *,
    timeout: float | None = None,
    max_bytes: int | None = None,
) -> bytes:
    """
    Fetch the raw contents of a remote file.

    Args:
        file_id: Opaque identifier of the file on the remote host
        timeout: Seconds before giving up (defaults to config.FETCH_TIMEOUT_SEC)
        max_bytes: Largest accepted body (defaults to config.FETCH_MAX_BYTES)

    Returns:
        The response body

    Raises:
        FileFetchError: 504 on timeout, the upstream status on an HTTP error,
            500 for an oversized body or any other failure
    """
    if not file_id or not file_id.strip():
        raise FileFetchError(400, "File id is required")

    timeout = timeout if timeout is not None else config.FETCH_TIMEOUT_SEC
    max_bytes = max_bytes if max_bytes is not None else config.FETCH_MAX_BYTES
    request = urllib.request.Request(
        build_url(file_id),
        headers={"User-Agent": config.FETCH_USER_AGENT},
    )

    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read(max_bytes + 1)
    except urllib.error.HTTPError as e:
        logger.warning(f"Upstream returned {e.code} for file {file_id}")
        raise FileFetchError(e.code, f"Upstream error: {e.reason}") from e
    except Exception as e:
        if _is_timeout(e):
            logger.warning(f"Timed out fetching file {file_id} after {timeout}s")
            raise FileFetchError(504, "Timed out fetching file") from e
        logger.error(f"Failed to fetch file {file_id}: {e}")
        raise FileFetchError(500, str(e)) from e

    if len(body) > max_bytes:
        raise FileFetchError(500, f"File exceeds {max_bytes} bytes")

    logger.debug(f"Fetched {len(body)} bytes for file {file_id}")
    return body
