from fastapi import Request

from vidrelay.scheduler import RetentionScheduler
from vidrelay.services import MediaDownloader, TelegramPublisher
from vidrelay.storage import FileStore


def get_store(request: Request) -> FileStore:
    return request.app.state.store


def get_scheduler(request: Request) -> RetentionScheduler:
    return request.app.state.scheduler


def get_downloader(request: Request) -> MediaDownloader:
    return request.app.state.downloader


def get_publisher(request: Request) -> TelegramPublisher:
    return request.app.state.publisher
