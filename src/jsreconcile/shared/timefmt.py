from __future__ import annotations

import re
from datetime import UTC, datetime

from jsreconcile.shared.errors import InvalidTimestamp

_RFC3339_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}[Tt]\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:[Zz]|[+-]\d{2}:\d{2})"
)


def parse_rfc3339(field: str, value: str) -> datetime:
    """Parse an RFC3339 timestamp; anything looser is rejected."""

    if not isinstance(value, str) or not _RFC3339_RE.fullmatch(value):
        raise InvalidTimestamp(field, str(value))
    text = value.upper()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat accepts at most 6 fractional digits; the server sends 9
    head, sep, tail = text.partition(".")
    if sep:
        digits = re.match(r"\d+", tail).group(0)  # type: ignore[union-attr]
        text = f"{head}.{digits[:6].ljust(6, '0')}{tail[len(digits):]}"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidTimestamp(field, value) from exc
    return parsed.astimezone(UTC)


def format_rfc3339(ts: datetime) -> str:
    """UTC with a trailing Z; fractional seconds kept, trailing zeros trimmed."""

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=UTC)
    ts = ts.astimezone(UTC)
    text = ts.replace(microsecond=0, tzinfo=None).isoformat()
    if ts.microsecond:
        text += "." + f"{ts.microsecond:06d}".rstrip("0")
    return text + "Z"


def canonical_rfc3339(field: str, value: str) -> str:
    """Normalise a declared timestamp to the form Read reports.

    Unparseable input is returned unchanged so the mapper reports it.
    """

    if not value:
        return value
    try:
        return format_rfc3339(parse_rfc3339(field, value))
    except InvalidTimestamp:
        return value
