from .download import router as download_router
from .health import router as health_router
from .media import router as media_router
from .pages import router as pages_router

__all__ = [
    "download_router",
    "health_router",
    "media_router",
    "pages_router",
]
