"""Chat transports."""
from .telegram import TelegramTransport

__all__ = ["TelegramTransport"]
