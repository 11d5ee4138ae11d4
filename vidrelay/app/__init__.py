from .application import create_app, setup_logging, start_api

__all__ = [
    "create_app",
    "setup_logging",
    "start_api",
]
