import asyncio

import httpx
import pytest

from vidrelay.services import (
    DownloadError,
    MediaDownloader,
    MediaResolver,
    ResolveError,
    TelegramPublisher,
    parse_resolver_payload,
)
from vidrelay.storage import FileStore

from conftest import CDN_HOST, RESOLVER_HOST, TELEGRAM_HOST


def test_payload_prefers_hd_link(resolver_payload: dict):
    media = parse_resolver_payload(resolver_payload)
    assert media.title == "My: Clip?"
    assert media.download_url == f"https://{CDN_HOST}/hd.mp4"


def test_payload_falls_back_to_fast_download(resolver_payload: dict):
    resolver_payload["response"][0]["resolutions"]["HD Video"] = None
    media = parse_resolver_payload(resolver_payload)
    assert media.download_url == f"https://{CDN_HOST}/fast.mp4"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"response": []},
        {"response": [{"title": "x"}]},
        {"response": [{"title": "x", "resolutions": []}]},
        {"response": [{"title": "x", "resolutions": {"HD Video": ""}}]},
        None,
    ],
)
def test_payload_errors(payload):
    with pytest.raises(ResolveError):
        parse_resolver_payload(payload)


async def test_resolver_passes_url_as_query(http_client: httpx.AsyncClient, upstream_requests):
    resolver = MediaResolver(f"https://{RESOLVER_HOST}/", http_client)

    media = await resolver.resolve("https://host.example/s/abc?x=1")

    assert media.download_url.endswith("/hd.mp4")
    assert upstream_requests[0].url.params["url"] == "https://host.example/s/abc?x=1"


async def test_resolver_http_error(http_client: httpx.AsyncClient, upstream):
    upstream[RESOLVER_HOST] = lambda request: httpx.Response(503)
    resolver = MediaResolver(f"https://{RESOLVER_HOST}/", http_client)

    with pytest.raises(ResolveError):
        await resolver.resolve("https://host.example/s/abc")


async def test_resolver_invalid_json(http_client: httpx.AsyncClient, upstream):
    upstream[RESOLVER_HOST] = lambda request: httpx.Response(200, content=b"<html>")
    resolver = MediaResolver(f"https://{RESOLVER_HOST}/", http_client)

    with pytest.raises(ResolveError):
        await resolver.resolve("https://host.example/s/abc")


async def test_download_writes_sanitized_file(store: FileStore, http_client: httpx.AsyncClient, sample_bytes: bytes):
    downloader = MediaDownloader(store, MediaResolver(f"https://{RESOLVER_HOST}/", http_client), http_client)

    path = await downloader.download("https://host.example/s/abc")

    assert path == store.root / "My Clip.mp4"
    assert path.read_bytes() == sample_bytes
    assert store.list_files() == ["My Clip.mp4"]


async def test_download_overwrites_same_title(store: FileStore, http_client: httpx.AsyncClient, upstream):
    (store.root / "My Clip.mp4").write_bytes(b"old")
    upstream[CDN_HOST] = lambda request: httpx.Response(200, content=b"new")
    downloader = MediaDownloader(store, MediaResolver(f"https://{RESOLVER_HOST}/", http_client), http_client)

    path = await downloader.download("https://host.example/s/abc")

    assert path.read_bytes() == b"new"


async def test_download_failure_leaves_no_partial_file(store: FileStore, http_client: httpx.AsyncClient, upstream):
    upstream[CDN_HOST] = lambda request: httpx.Response(404)
    downloader = MediaDownloader(store, MediaResolver(f"https://{RESOLVER_HOST}/", http_client), http_client)

    with pytest.raises(DownloadError):
        await downloader.download("https://host.example/s/abc")
    assert store.list_files() == []


async def test_download_interrupted_mid_body_leaves_no_partial_file(
    store: FileStore, http_client: httpx.AsyncClient, upstream
):
    async def broken_body():
        yield b"first half"
        raise httpx.ReadError("connection reset")

    upstream[CDN_HOST] = lambda request: httpx.Response(200, content=broken_body())
    downloader = MediaDownloader(store, MediaResolver(f"https://{RESOLVER_HOST}/", http_client), http_client)

    with pytest.raises(DownloadError):
        await downloader.download("https://host.example/s/abc")
    assert store.list_files() == []


async def test_concurrent_downloads_of_same_title(store: FileStore, http_client: httpx.AsyncClient, upstream):
    bodies = iter([b"a" * 300, b"b" * 300])

    async def slow_body(data: bytes):
        for offset in range(0, len(data), 100):
            await asyncio.sleep(0.01)
            yield data[offset : offset + 100]

    upstream[CDN_HOST] = lambda request: httpx.Response(200, content=slow_body(next(bodies)))
    downloader = MediaDownloader(store, MediaResolver(f"https://{RESOLVER_HOST}/", http_client), http_client)

    results = await asyncio.gather(
        downloader.download("https://host.example/s/abc"),
        downloader.download("https://host.example/s/abc"),
        return_exceptions=True,
    )

    assert results == [store.root / "My Clip.mp4", store.root / "My Clip.mp4"]
    assert (store.root / "My Clip.mp4").read_bytes() in {b"a" * 300, b"b" * 300}
    assert store.list_files() == ["My Clip.mp4"]


async def test_download_long_non_ascii_title(
    store: FileStore, http_client: httpx.AsyncClient, upstream, resolver_payload: dict, sample_bytes: bytes
):
    resolver_payload["response"][0]["title"] = "视频" * 60
    downloader = MediaDownloader(store, MediaResolver(f"https://{RESOLVER_HOST}/", http_client), http_client)

    path = await downloader.download("https://host.example/s/abc")

    assert path.name == "视频" * 33 + ".mp4"
    assert path.read_bytes() == sample_bytes
    assert store.list_files() == [path.name]


async def test_publisher_skips_when_unconfigured(store: FileStore, http_client, upstream_requests, sample_file):
    publisher = TelegramPublisher(http_client, bot_token=None, channel_id="@channel")

    assert publisher.configured is False
    assert await publisher.publish(store.root / sample_file) is False
    assert upstream_requests == []


async def test_publisher_sends_video(store: FileStore, http_client, upstream_requests, sample_file):
    publisher = TelegramPublisher(
        http_client,
        bot_token="123:abc",
        channel_id="@channel",
        api_base=f"https://{TELEGRAM_HOST}/",
    )

    assert await publisher.publish(store.root / sample_file) is True

    request = upstream_requests[0]
    assert request.method == "POST"
    assert request.url.path == "/bot123:abc/sendVideo"
    body = request.content
    assert b'name="chat_id"' in body
    assert b"@channel" in body
    assert b"Video: clip.mp4" in body
    assert b'filename="clip.mp4"' in body


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500),
        httpx.Response(200, json={"ok": False, "description": "Bad Request: file is too big"}),
        httpx.Response(200, content=b"not json"),
    ],
)
async def test_publisher_failures_return_false(store: FileStore, http_client, upstream, sample_file, response):
    upstream[TELEGRAM_HOST] = lambda request: response
    publisher = TelegramPublisher(
        http_client,
        bot_token="123:abc",
        channel_id="@channel",
        api_base=f"https://{TELEGRAM_HOST}",
    )

    assert await publisher.publish(store.root / sample_file) is False


async def test_publisher_missing_file_returns_false(store: FileStore, http_client):
    publisher = TelegramPublisher(http_client, bot_token="t", channel_id="c", api_base=f"https://{TELEGRAM_HOST}")
    assert await publisher.publish(store.root / "missing.mp4") is False
