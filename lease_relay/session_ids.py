"""Conversation key helpers."""

import re
from typing import Any

SESSION_ID_PATTERN = re.compile(r"\+?[0-9]+")


def normalize_session_id(raw: Any) -> str:
    """
    Reduce a conversation key to the phone number the engine expects.

    Composite keys look like ``"<channel>|<phone>"``; only the part after the
    last ``|`` is kept. Anything falsy becomes ``""``.
    """
    if raw is None or raw == "":
        return ""
    if isinstance(raw, dict):
        raw = "".join(str(v) for v in raw.values())
    value = str(raw)
    if "|" in value:
        value = value.rsplit("|", 1)[-1]
    return value.strip()


def is_valid_session_id(value: Any) -> bool:
    return isinstance(value, str) and bool(SESSION_ID_PATTERN.fullmatch(value))
