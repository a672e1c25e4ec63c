"""Duration parsing and formatting for exported report cells.

Exports mix several notations for the same quantity:

- ``"12:34"`` / ``"01:12:34"``  colon form (MM:SS or HH:MM:SS)
- ``"7.07:45:01"``              day-dotted form (D.HH:MM:SS)
- ``"1g 5s 10dk"``              localized word-suffixed form, also what
                                ``format_duration`` emits

Everything is normalized to whole seconds. Parsing never raises.
"""

from __future__ import annotations

import logging
import math
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentboard.models import Diagnostics

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400
SECONDS_PER_HOUR = 3600
SECONDS_PER_MINUTE = 60

ZERO_DURATION = "0dk 0sn"

_ANNOTATION_RE = re.compile(r"\s*\(.*?\)")

_DAYS_RE = re.compile(r"(\d+)g")
# Trailing whitespace separates the hour suffix "s " from seconds "sn"
_HOURS_RE = re.compile(r"(\d+)s\s")
_MINUTES_RE = re.compile(r"(\d+)dk")
_SECONDS_RE = re.compile(r"(\d+)sn")

_SUFFIX_MARKERS = ("dk", "sn", "g", "s ")

# ASCII only; str.isdigit also accepts digits like "²" that int() rejects
_DIGITS_RE = re.compile(r"[0-9]+")


def _strip_annotations(text: str) -> str:
    return _ANNOTATION_RE.sub("", text).strip()


def _parse_suffixed(text: str) -> int | None:
    """Sum every suffixed token; None when no token matched at all."""
    total = 0
    matched = False
    for pattern, unit in (
        (_DAYS_RE, SECONDS_PER_DAY),
        (_HOURS_RE, SECONDS_PER_HOUR),
        (_MINUTES_RE, SECONDS_PER_MINUTE),
        (_SECONDS_RE, 1),
    ):
        match = pattern.search(text)
        if match:
            total += int(match.group(1)) * unit
            matched = True
    return total if matched else None


def _parse_colon_fields(text: str) -> list[int] | None:
    """Split on ':' into non-negative ints, or None if any field isn't one."""
    parts = text.split(":")
    if not all(_DIGITS_RE.fullmatch(p.strip()) for p in parts):
        return None
    return [int(p) for p in parts]


def _parse_day_dotted(text: str) -> int | None:
    parts = text.split(".")
    if len(parts) != 2 or not _DIGITS_RE.fullmatch(parts[0].strip()):
        return None
    fields = _parse_colon_fields(parts[1])
    if fields is None or len(fields) != 3:
        return None
    hours, minutes, seconds = fields
    return (
        int(parts[0]) * SECONDS_PER_DAY
        + hours * SECONDS_PER_HOUR
        + minutes * SECONDS_PER_MINUTE
        + seconds
    )


def parse_duration(text: object, diagnostics: Diagnostics | None = None) -> int:
    """Convert a duration cell into whole seconds.

    Formats are tried in order: localized suffix form, day-dotted form,
    then colon form. Parenthetical annotations such as ``" (Avg.)"`` are
    stripped first. Empty input is 0. Unparseable input is also 0; when a
    Diagnostics collector is passed, the failure is recorded there too.
    """
    if text is None:
        return 0
    clean = _strip_annotations(str(text))
    if not clean:
        return 0

    if any(marker in clean for marker in _SUFFIX_MARKERS):
        seconds = _parse_suffixed(clean)
        if seconds is not None:
            return seconds
    elif "." in clean:
        seconds = _parse_day_dotted(clean)
        if seconds is not None:
            return seconds

    fields = _parse_colon_fields(clean)
    if fields is not None:
        if len(fields) == 3:
            return fields[0] * SECONDS_PER_HOUR + fields[1] * SECONDS_PER_MINUTE + fields[2]
        if len(fields) == 2:
            return fields[0] * SECONDS_PER_MINUTE + fields[1]

    if diagnostics is not None:
        logger.warning("Unparseable duration %r, using 0", clean)
        diagnostics.add(f"unparseable duration: {clean!r}")
    return 0


def format_duration(seconds: object) -> str:
    """Format seconds as the coarsest localized form.

    Days drop the seconds field, so the round trip through parse_duration
    is lossy above one day:

        >>> format_duration(125)
        '2dk 5sn'
        >>> format_duration(90061)
        '1g 1s 1dk'
    """
    if seconds is None or isinstance(seconds, bool):
        return ZERO_DURATION
    try:
        value = float(seconds)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return ZERO_DURATION
    if math.isnan(value) or math.isinf(value) or value < 0:
        return ZERO_DURATION

    remaining = int(value)
    days, remaining = divmod(remaining, SECONDS_PER_DAY)
    hours, remaining = divmod(remaining, SECONDS_PER_HOUR)
    minutes, secs = divmod(remaining, SECONDS_PER_MINUTE)

    if days > 0:
        return f"{days}g {hours}s {minutes}dk"
    if hours > 0:
        return f"{hours}s {minutes}dk {secs}sn"
    return f"{minutes}dk {secs}sn"
