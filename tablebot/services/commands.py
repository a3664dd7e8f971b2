"""Parsing of inbound chat text into bot commands."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence, Union

from tablebot.core.logger import get_logger

LOGGER = get_logger()

GET_TABLE = "get table"
COMPARE_PREFIX = "compare ca"
ECHO_PREFIX = "Echo: "

_FOR_SPLIT = re.compile(r"\s+for\s+")


@dataclass(frozen=True, slots=True)
class TableCommand:
    """Ask the analytics API for a table and send it back as an image."""

    prompt: str
    shop_id: str


@dataclass(frozen=True, slots=True)
class EchoCommand:
    """Anything unrecognised is echoed back to the sender."""

    text: str

    @property
    def reply(self) -> str:
        return f"{ECHO_PREFIX}{self.text}"


Command = Union[TableCommand, EchoCommand]


def is_table_request(text: str) -> bool:
    normalized = text.lower().strip()
    return normalized == GET_TABLE or normalized.startswith(COMPARE_PREFIX)


def resolve_default_shop(available: Sequence[str], preferred: str | None, fallback: str) -> str:
    """Preferred shop if the API knows it, else the first known shop, else ``fallback``."""

    if preferred and preferred in available:
        return preferred
    if available:
        return available[0]
    return fallback


def match_shop(candidate: str, available: Sequence[str]) -> str | None:
    """Find ``candidate`` among ``available`` ignoring case; return the canonical id."""

    lowered = candidate.strip().lower()
    for shop_id in available:
        if shop_id.lower() == lowered:
            return shop_id
    return None


def parse_command(
    text: str,
    available_shops: Sequence[str],
    *,
    default_prompt: str,
    preferred_shop: str | None = None,
    default_shop: str = "default_shop",
) -> Command:
    """Interpret a chat message.

    ``get table`` runs the default prompt. ``compare ca ...`` uses the message
    itself as the prompt; a trailing ``for <shop>`` selects the shop when the
    analytics API knows it. Everything else is echoed.
    """

    message = (text or "").lower().strip()
    if not is_table_request(message):
        return EchoCommand(message)

    shop_id = resolve_default_shop(available_shops, preferred_shop, default_shop)
    if message == GET_TABLE:
        return TableCommand(prompt=default_prompt, shop_id=shop_id)

    prompt = message
    parts = _FOR_SPLIT.split(message)
    if len(parts) > 1:
        prompt = " for ".join(parts[:-1]).strip()
        candidate = parts[-1].strip()
        matched = match_shop(candidate, available_shops)
        if matched is not None:
            shop_id = matched
        else:
            LOGGER.warning("commands.unknown_shop candidate=%s fallback=%s", candidate, shop_id)
    return TableCommand(prompt=prompt, shop_id=shop_id)


__all__ = [
    "Command",
    "EchoCommand",
    "TableCommand",
    "is_table_request",
    "match_shop",
    "parse_command",
    "resolve_default_shop",
]
