"""HTTP surface: WhatsApp webhook, health check and rendered artifacts."""

from .main import create_app

__all__ = ["create_app"]
