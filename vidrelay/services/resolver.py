"""Resolve a hosting page URL to a direct media link via the external API."""
import logging
import time
from typing import Any

import httpx
from pydantic import BaseModel

_logger = logging.getLogger("vidrelay")

# Tried in order; the first non-empty link wins.
PREFERRED_RESOLUTIONS = ("HD Video", "Fast Download")


class AcquisitionError(Exception):
    """Base class for failures while fetching a video."""


class ResolveError(AcquisitionError):
    pass


class ResolvedMedia(BaseModel):
    title: str
    download_url: str


def parse_resolver_payload(data: Any) -> ResolvedMedia:
    try:
        entry = data["response"][0]
        title = entry["title"]
        resolutions = entry["resolutions"]
    except (KeyError, IndexError, TypeError) as exc:
        raise ResolveError(f"Unexpected resolver payload: missing {exc}") from exc

    if not isinstance(resolutions, dict):
        raise ResolveError("Unexpected resolver payload: resolutions is not an object")

    for key in PREFERRED_RESOLUTIONS:
        link = resolutions.get(key)
        if link:
            return ResolvedMedia(title=str(title or ""), download_url=str(link))
    raise ResolveError(f"No download link available (looked for {', '.join(PREFERRED_RESOLUTIONS)})")


class MediaResolver:
    def __init__(self, api_url: str, client: httpx.AsyncClient):
        self.api_url = api_url
        self._client = client

    async def resolve(self, url: str) -> ResolvedMedia:
        _logger.info("Resolve start url=%s", url)
        start = time.monotonic()
        try:
            response = await self._client.get(self.api_url, params={"url": url})
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise ResolveError(f"Resolver request failed: {exc}") from exc
        except ValueError as exc:
            raise ResolveError("Resolver returned invalid JSON") from exc

        media = parse_resolver_payload(data)
        _logger.info(
            "Resolve done url=%s title=%r elapsed_ms=%d",
            url,
            media.title,
            int((time.monotonic() - start) * 1000),
        )
        return media
