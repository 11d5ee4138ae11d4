"""Republish downloaded videos to a Telegram channel."""
import logging
import time
from pathlib import Path
from typing import Optional

import httpx

from .streaming import VIDEO_CONTENT_TYPE

_logger = logging.getLogger("vidrelay")


class TelegramPublisher:
    """Upload files with the Bot API ``sendVideo`` method."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        bot_token: Optional[str],
        channel_id: Optional[str],
        api_base: str = "https://api.telegram.org",
    ):
        self._client = client
        self._bot_token = bot_token
        self.channel_id = channel_id
        self.api_base = api_base.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self._bot_token and self.channel_id)

    async def publish(self, path: Path, caption: Optional[str] = None) -> bool:
        """Send ``path`` to the channel. Returns False instead of raising."""
        if not self.configured:
            _logger.warning("[Telegram] Bot token or channel id not configured, skipping upload path=%s", path)
            return False

        caption = caption or f"Video: {path.name}"
        # The token is part of the URL; keep it out of the logs.
        url = f"{self.api_base}/bot{self._bot_token}/sendVideo"
        _logger.info("[Telegram] Upload start channel=%s path=%s", self.channel_id, path)
        start = time.monotonic()
        try:
            with path.open("rb") as fh:
                response = await self._client.post(
                    url,
                    data={"chat_id": self.channel_id, "caption": caption},
                    files={"video": (path.name, fh, VIDEO_CONTENT_TYPE)},
                )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            _logger.error("[Telegram] Upload rejected path=%s status=%d", path, exc.response.status_code)
            return False
        except httpx.HTTPError as exc:
            _logger.error("[Telegram] Upload failed path=%s error=%s", path, type(exc).__name__)
            return False
        except (OSError, ValueError) as exc:
            _logger.error("[Telegram] Upload failed path=%s error=%s", path, exc)
            return False

        if not payload.get("ok"):
            _logger.error("[Telegram] Upload not accepted path=%s description=%r", path, payload.get("description"))
            return False

        _logger.info(
            "[Telegram] Upload done channel=%s path=%s elapsed_ms=%d",
            self.channel_id,
            path,
            int((time.monotonic() - start) * 1000),
        )
        return True
