"""Download resolved media into the file store."""
import logging
import os
import time
from pathlib import Path
from typing import Optional

import httpx

from vidrelay.storage import FileStore, InvalidFilenameError
from vidrelay.utils import run_in_threadpool

from .resolver import AcquisitionError, MediaResolver

_logger = logging.getLogger("vidrelay")


class DownloadError(AcquisitionError):
    pass


class MediaDownloader:
    """
    Resolve a page URL and stream the media body to disk.

    The body is written to a private ``<name>.<random>.part`` file and renamed
    into place, so readers never see a half-written file. Two downloads with
    the same title each write their own temp file; the last rename wins.
    """

    def __init__(self, store: FileStore, resolver: MediaResolver, client: httpx.AsyncClient):
        self.store = store
        self.resolver = resolver
        self._client = client

    async def download(self, url: str) -> Path:
        media = await self.resolver.resolve(url)
        try:
            final_path = self.store.new_path(media.title)
        except InvalidFilenameError as exc:
            raise DownloadError(f"Cannot store title {media.title!r}") from exc

        _logger.info("Download start url=%s path=%s", url, final_path)
        start = time.monotonic()
        written = 0
        temp_path: Optional[Path] = None
        try:
            async with self._client.stream("GET", media.download_url, follow_redirects=True) as response:
                response.raise_for_status()
                fh = await run_in_threadpool(self.store.temp_file, final_path)
                temp_path = Path(fh.name)
                try:
                    async for chunk in response.aiter_bytes():
                        await run_in_threadpool(fh.write, chunk)
                        written += len(chunk)
                finally:
                    fh.close()
            await run_in_threadpool(os.replace, temp_path, final_path)
        except (httpx.HTTPError, OSError) as exc:
            if temp_path is not None:
                await run_in_threadpool(self.store.delete, temp_path)
            raise DownloadError(f"Download failed for {url}: {exc}") from exc

        _logger.info(
            "Download done url=%s path=%s bytes=%d elapsed_ms=%d",
            url,
            final_path,
            written,
            int((time.monotonic() - start) * 1000),
        )
        return final_path
