"""
Time entry durations.

OpenProject reads and writes ``hours`` as an ISO 8601 duration ("PT2H30M").
Callers usually have "2h 30m" or "1.5h" at hand, and readers usually want
minutes.
"""

from __future__ import annotations

import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

# "2h", "30m", "2h30m", "1.5h 15m"; units may repeat and are summed
HUMAN_TOKEN_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([hm])")
ISO_DURATION_RE = re.compile(
    r"^P(?:(?P<days>\d+(?:\.\d+)?)D)?"
    r"(?:T(?:(?P<hours>\d+(?:\.\d+)?)H)?(?:(?P<minutes>\d+(?:\.\d+)?)M)?"
    r"(?:(?P<seconds>\d+(?:\.\d+)?)S)?)?$"
)

_MINUTES_PER_UNIT = {"h": Decimal(60), "m": Decimal(1)}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be turned into ISO 8601."""


def parse_duration_string(duration_str: Optional[str]) -> str:
    """
    "2h 30m" -> "PT2H30M". Decimal hours are allowed and rounded half up to
    the minute ("1.51h" -> "PT1H31M"). Negative, empty or zero durations and
    text with no h/m token are rejected.
    """
    text = " ".join((duration_str or "").lower().split())
    if not text:
        raise DurationParseError("Duration is required.")
    if "-" in text:
        raise DurationParseError("Negative durations are not allowed.")

    tokens = HUMAN_TOKEN_RE.findall(text)
    if not tokens:
        raise DurationParseError(
            f"Unrecognised duration {duration_str!r}; use hours and minutes, e.g. '2h 30m'."
        )

    minutes = sum(
        (Decimal(amount) * _MINUTES_PER_UNIT[unit] for amount, unit in tokens),
        Decimal(0),
    )
    total = int(minutes.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if total <= 0:
        raise DurationParseError("Duration must be greater than zero.")

    hours, rest = divmod(total, 60)
    return "PT" + (f"{hours}H" if hours else "") + (f"{rest}M" if rest else "")


def iso_duration_to_minutes(iso: Optional[str]) -> Optional[int]:
    """
    "PT2H30M" -> 150, "P1DT1H" -> 1500 (a day is 24h). Seconds round up to the
    next minute. Returns None for anything that is not an ISO duration.
    """
    if not isinstance(iso, str):
        return None
    m = ISO_DURATION_RE.match(iso.strip())
    if not m or iso.strip() in ("P", "PT"):
        return None

    parts = {k: Decimal(v) for k, v in m.groupdict().items() if v is not None}
    minutes = (
        parts.get("days", Decimal(0)) * 24 * 60
        + parts.get("hours", Decimal(0)) * 60
        + parts.get("minutes", Decimal(0))
    )
    whole = int(minutes.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    if parts.get("seconds", Decimal(0)) > 0:
        whole += 1
    return whole


__all__ = ["DurationParseError", "iso_duration_to_minutes", "parse_duration_string"]
