from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse

router = APIRouter()


def render_index(request: Request, *, download_url=None, watch_url=None, error=None, status_code: int = 200):
    templates = request.app.state.templates
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "download_url": download_url,
            "watch_url": watch_url,
            "error": error,
            "retention_hours": request.app.state.settings.retention_ttl_hours,
        },
        status_code=status_code,
    )


@router.get("/", response_class=HTMLResponse)
async def index(request: Request):
    return render_index(request)
