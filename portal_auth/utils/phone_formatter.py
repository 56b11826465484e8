from __future__ import annotations
import re

MAX_DIGITS = 11
CANONICAL_PATTERN = re.compile(r"\+[0-9] \([0-9]{3}\) [0-9]{3}-[0-9]{4}")
_NON_DIGITS = re.compile(r"[^0-9]")


def digits(raw: str | None) -> str:
    return _NON_DIGITS.sub("", raw or "")[:MAX_DIGITS]


def format(raw: str | None) -> str:
    """
    Render digits typed so far into the canonical `+C (AAA) PPP-SSSS` pattern.

    Formatting only depends on the digits present, so feeding an already
    formatted value back through yields the same string.
    """
    d = digits(raw)
    if not d:
        return ""

    country, area, prefix, line = d[0], d[1:4], d[4:7], d[7:11]
    formatted = f"+{country}"
    if area:
        formatted += f" ({area}"
        if len(area) == 3:
            formatted += ")"
    if prefix:
        formatted += f" {prefix}"
    if line:
        formatted += f"-{line}"
    return formatted


def is_valid(formatted: str | None) -> bool:
    return bool(formatted) and CANONICAL_PATTERN.fullmatch(formatted) is not None
