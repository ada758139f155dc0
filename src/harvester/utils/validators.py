"""Validation helpers."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Any
from urllib.parse import urlparse

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")

# Formats accepted besides ISO-8601 (``datetime.fromisoformat``).
_LOOSE_DATE_FORMATS = (
    "%Y/%m/%d",
    "%d/%m/%Y",
    "%d-%m-%Y",
    "%Y.%m.%d",
    "%d.%m.%Y",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
    "%a, %d %b %Y %H:%M:%S GMT",
)


def is_absolute_url(url: Any) -> bool:
    """True for a string carrying a scheme plus a host or an opaque path.

    ``https://ex.com/a.pdf``, ``https://ex.com/Rapport annuel.pdf`` and
    ``mailto:a@b.c`` pass; ``not-a-url``, ``/relative/path``, ``https://`` and
    ``https://ex .com/`` do not. Whitespace is only tolerated after the host,
    where clients percent-encode it.
    """
    if not isinstance(url, str):
        return False
    candidate = url.strip()
    if not candidate:
        return False
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return False
    if not parsed.scheme or not _SCHEME_RE.match(parsed.scheme):
        return False
    if parsed.scheme.lower() in ("http", "https", "ftp", "ftps", "ws", "wss"):
        return bool(parsed.hostname) and not any(ch.isspace() for ch in parsed.netloc)
    return bool(parsed.netloc or parsed.path)


def is_loose_date(value: Any) -> bool:
    """Accept ISO-8601 dates/timestamps and a handful of common spellings.

    Values shorter than ``YYYY-MM-DD`` are rejected.
    """
    if not isinstance(value, str):
        return False
    s = value.strip()
    if len(s) < 8:
        return False
    iso = s[:-1] + "+00:00" if s.endswith(("Z", "z")) else s
    try:
        datetime.fromisoformat(iso)
        return True
    except ValueError:
        pass
    for fmt in _LOOSE_DATE_FORMATS:
        try:
            datetime.strptime(s, fmt)
            return True
        except ValueError:
            continue
    return False


def max_plausible_year() -> int:
    return date.today().year + 1


def is_plausible_year(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 1900 <= value <= max_plausible_year()


def parse_year(value: Any) -> int | None:
    """Return a plausible year from an int or numeric string, else None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str):
        s = value.strip()
        if not s.isdigit():
            return None
        value = int(s)
    return value if is_plausible_year(value) else None
