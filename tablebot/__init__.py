"""WhatsApp bot that answers analytics prompts with rendered table images."""

__version__ = "0.1.0"
