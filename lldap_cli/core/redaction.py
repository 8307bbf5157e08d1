"""Scrub credentials out of text before it reaches logs or exceptions."""
from __future__ import annotations
import re

REDACTED = "[REDACTED]"

_PATTERNS = (
    (re.compile(r"token[=:]\S+", re.IGNORECASE), f"token={REDACTED}"),
    (re.compile(r"password[=:]\S+", re.IGNORECASE), f"password={REDACTED}"),
    (re.compile(r"Bearer \S+", re.IGNORECASE), f"Bearer {REDACTED}"),
)


def redact(text: str) -> str:
    """Replace ``token=...``, ``password=...`` and ``Bearer ...`` values.

    Args:
        text: Arbitrary message, possibly containing server output

    Returns:
        The message with every credential value replaced by ``[REDACTED]``
    """
    for pattern, replacement in _PATTERNS:
        text = pattern.sub(replacement, text)
    return text
