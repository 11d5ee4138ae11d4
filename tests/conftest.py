"""
Shared fixtures and test utilities.
"""

import os
import tempfile
from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing the app
os.environ.update({
    "DOWNLOADS_DIR": tempfile.mkdtemp(),
    "LOG_LEVEL": "DEBUG",
    "TELEGRAM_BOT_TOKEN": "",
    "TELEGRAM_CHANNEL_ID": "",
})

from vidrelay.app import create_app
from vidrelay.config import Settings
from vidrelay.storage import FileStore

RESOLVER_HOST = "resolver.test"
CDN_HOST = "cdn.test"
TELEGRAM_HOST = "telegram.test"

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def temp_dir() -> Generator[Path]:
    """Provide a temporary directory that is cleaned up after the test."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_dir: Path) -> Settings:
    """Settings pointing at a temporary store and fake upstream hosts."""
    return Settings(
        downloads_dir=temp_dir / "downloads",
        stream_chunk_size=64,
        resolver_api_url=f"https://{RESOLVER_HOST}/",
        telegram_api_base=f"https://{TELEGRAM_HOST}",
    )


@pytest.fixture
def store(settings: Settings) -> FileStore:
    """A FileStore over the same directory the app serves."""
    return FileStore(settings.downloads_dir, chunk_size=settings.stream_chunk_size)


@pytest.fixture
def sample_bytes() -> bytes:
    """1000 bytes whose values encode their offsets."""
    return bytes(i % 251 for i in range(1000))


@pytest.fixture
def sample_file(store: FileStore, sample_bytes: bytes) -> str:
    """Write clip.mp4 into the store and return its filename."""
    (store.root / "clip.mp4").write_bytes(sample_bytes)
    return "clip.mp4"


@pytest.fixture
def resolver_payload() -> dict:
    """Provide a sample link resolution response."""
    return {
        "response": [
            {
                "title": "My: Clip?",
                "resolutions": {
                    "Fast Download": f"https://{CDN_HOST}/fast.mp4",
                    "HD Video": f"https://{CDN_HOST}/hd.mp4",
                },
            }
        ]
    }


@pytest.fixture
def upstream(resolver_payload: dict, sample_bytes: bytes) -> dict[str, Handler]:
    """Per-host handlers for the mocked upstream; tests may replace entries."""
    return {
        RESOLVER_HOST: lambda request: httpx.Response(200, json=resolver_payload),
        CDN_HOST: lambda request: httpx.Response(200, content=sample_bytes),
        TELEGRAM_HOST: lambda request: httpx.Response(200, json={"ok": True, "result": {}}),
    }


@pytest.fixture
def upstream_requests() -> list[httpx.Request]:
    """Every request sent to the mocked upstream, in order."""
    return []


@pytest.fixture
async def http_client(
    upstream: dict[str, Handler],
    upstream_requests: list[httpx.Request],
) -> AsyncGenerator[httpx.AsyncClient]:
    """An httpx client whose transport dispatches on host to ``upstream``."""

    def dispatch(request: httpx.Request) -> httpx.Response:
        upstream_requests.append(request)
        handler = upstream.get(request.url.host)
        if handler is None:
            return httpx.Response(404)
        return handler(request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(dispatch)) as client:
        yield client


@pytest.fixture
def app(settings: Settings, http_client: httpx.AsyncClient):
    """Provide a fresh app instance wired to the mocked upstream."""
    return create_app(settings=settings, http_client=http_client)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient]:
    """Provide an async HTTP client for testing the FastAPI app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
async def running_scheduler(app) -> AsyncGenerator:
    """Start the app's retention scheduler; ASGITransport skips the lifespan."""
    scheduler = app.state.scheduler
    scheduler.start()
    yield scheduler
    scheduler.stop()
