"""Playback and direct download of stored files."""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import FileResponse
from starlette.responses import Response

from vidrelay.services import not_found_response, stream_file
from vidrelay.storage import FileStore, InvalidFilenameError
from vidrelay.utils import run_in_threadpool

from .deps import get_store

router = APIRouter()
_logger = logging.getLogger("vidrelay")


@router.api_route("/watch/{filename}", methods=["GET", "HEAD"], name="watch_file")
async def watch_file(
    filename: str,
    request: Request,
    store: FileStore = Depends(get_store),
) -> Response:
    """Stream a stored video, honoring a single ``Range`` request."""
    return await stream_file(
        store,
        filename,
        request.headers.get("range"),
        head_only=request.method == "HEAD",
    )


@router.api_route("/downloads/{filename}", methods=["GET", "HEAD"], name="download_file")
async def download_file(filename: str, store: FileStore = Depends(get_store)) -> Response:
    """Serve a stored file as-is."""
    if not await run_in_threadpool(store.exists, filename):
        _logger.info("Download target missing filename=%s", filename)
        return not_found_response()

    try:
        path = store.resolve(filename)
    except InvalidFilenameError:
        return not_found_response()
    _logger.info("Serving file filename=%s path=%s", filename, path)
    return FileResponse(path=str(path), filename=path.name)
