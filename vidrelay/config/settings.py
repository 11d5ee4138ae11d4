"""Configuration loaded from the environment (and .env when present)."""
import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from vidrelay.utils import env_truthy

load_dotenv()

_logger = logging.getLogger("vidrelay")

DEFAULT_RESOLVER_API_URL = "https://teraboxvideodownloader.nepcoderdevs.workers.dev/"
DEFAULT_TELEGRAM_API_BASE = "https://api.telegram.org"


class Settings(BaseModel):
    """
    Runtime settings.

    - downloads_dir: root of the file store
    - retention_ttl_hours: age after which stored files are deleted
    - sweep_cron: crontab expression for the recurring retention sweep
    - resolver_api_url: external API that turns a hosting URL into a direct link
    - telegram_*: channel publishing, disabled unless token and channel are set
    """

    downloads_dir: Path = Field(default=Path("./downloads"))
    retention_ttl_hours: float = Field(default=24.0, gt=0)
    sweep_cron: str = Field(default="0 * * * *")
    sweep_enabled: bool = Field(default=True)
    stream_chunk_size: int = Field(default=512 * 1024, gt=0)
    resolver_api_url: str = Field(default=DEFAULT_RESOLVER_API_URL)
    http_timeout: float = Field(default=60.0, gt=0)
    telegram_bot_token: Optional[str] = Field(default=None)
    telegram_channel_id: Optional[str] = Field(default=None)
    telegram_api_base: str = Field(default=DEFAULT_TELEGRAM_API_BASE)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @property
    def retention_ttl_seconds(self) -> float:
        return self.retention_ttl_hours * 3600

    @property
    def telegram_configured(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_channel_id)

    @classmethod
    def from_env(cls) -> "Settings":
        cfg = cls(
            downloads_dir=Path(os.getenv("DOWNLOADS_DIR", "./downloads")),
            retention_ttl_hours=float(os.getenv("RETENTION_TTL_HOURS", "24")),
            sweep_cron=os.getenv("SWEEP_CRON", "0 * * * *").strip(),
            sweep_enabled=env_truthy(os.getenv("SWEEP_ENABLED"), default=True),
            stream_chunk_size=int(os.getenv("STREAM_CHUNK_SIZE", str(512 * 1024))),
            resolver_api_url=os.getenv("RESOLVER_API_URL", DEFAULT_RESOLVER_API_URL),
            http_timeout=float(os.getenv("HTTP_TIMEOUT", "60")),
            telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
            telegram_channel_id=os.getenv("TELEGRAM_CHANNEL_ID") or None,
            telegram_api_base=os.getenv("TELEGRAM_API_BASE", DEFAULT_TELEGRAM_API_BASE),
            host=os.getenv("HOST", "0.0.0.0"),
            port=int(os.getenv("PORT", "8000")),
        )
        _logger.info(
            "Settings loaded downloads_dir=%s ttl_hours=%s sweep_cron=%r sweep_enabled=%s telegram_configured=%s",
            cfg.downloads_dir,
            cfg.retention_ttl_hours,
            cfg.sweep_cron,
            cfg.sweep_enabled,
            cfg.telegram_configured,
        )
        return cfg
