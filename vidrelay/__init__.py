"""vidrelay: fetch hosted videos, relay them to Telegram and stream them back."""

__version__ = "0.1.0"
