"""Fetch a hosted video, schedule its expiry and republish it."""
import logging
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel

from vidrelay.scheduler import SchedulerNotRunningError
from vidrelay.services import AcquisitionError

from .deps import get_downloader, get_publisher, get_scheduler
from .pages import render_index

router = APIRouter()
_logger = logging.getLogger("vidrelay")


class DownloadRequest(BaseModel):
    url: str


class RelayResult(BaseModel):
    filename: str
    download_url: str
    watch_url: str
    published: bool
    expires_at: Optional[datetime] = None


def _public_url(request: Request, prefix: str, filename: str) -> str:
    return f"{str(request.base_url).rstrip('/')}/{prefix}/{quote(filename, safe='')}"


async def relay_video(request: Request, url: str) -> RelayResult:
    """Download ``url`` into the store, register its deletion, publish it."""
    path = await get_downloader(request).download(url)

    scheduler = get_scheduler(request)
    expires_at = None
    try:
        job_id = scheduler.register_file(path)
        expires_at = scheduler.pending().get(job_id)
    except SchedulerNotRunningError:
        _logger.error("Could not schedule deletion, scheduler not running path=%s", path)

    published = await get_publisher(request).publish(path)
    return RelayResult(
        filename=path.name,
        download_url=_public_url(request, "downloads", path.name),
        watch_url=_public_url(request, "watch", path.name),
        published=published,
        expires_at=expires_at,
    )


@router.post("/download", response_class=HTMLResponse)
async def download_form(request: Request, url: str = Form(default="")):
    url = url.strip()
    if not url:
        return render_index(request, error="Video URL is required.")

    try:
        result = await relay_video(request, url)
    except AcquisitionError as exc:
        _logger.warning("Download failed url=%s error=%s", url, exc)
        return render_index(request, error="Failed to download video. Please ensure the URL is correct.")
    except Exception as exc:
        _logger.exception("Download route failed url=%s error=%s", url, exc)
        return render_index(request, error="Failed to download video. Please try again later.")

    return render_index(request, download_url=result.download_url, watch_url=result.watch_url)


@router.post("/api/download", response_class=JSONResponse)
async def api_download(request: Request, body: DownloadRequest):
    url = body.url.strip()
    if not url:
        raise HTTPException(status_code=400, detail="url is required")

    try:
        result = await relay_video(request, url)
    except AcquisitionError as exc:
        _logger.warning("Download failed url=%s error=%s", url, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    return {"status": "success", "data": result.model_dump(mode="json")}
