"""
Request validation for new callbacks: remote URL and delay parsing.
"""

import math
import re
from datetime import timedelta
from urllib.parse import urlparse

from delayhook.core.callback import Callback
from delayhook.errors import ValidationError

# Seconds per duration unit, as accepted in the "in" field ("90s", "1h30m", "1.5h")
_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # micro sign
    "μs": 1e-6,  # greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_COMPONENT = re.compile(r"(\d+\.?\d*|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

# Largest duration representable as int64 nanoseconds: 2562047h47m16.854775807s
MAX_DURATION_SECONDS = (2**63 - 1) / 1e9


def parse_duration(text: str) -> timedelta:
    """
    Parse a duration such as ``"90s"``, ``"1m"``, ``"1h30m"`` or ``"1.5h"``.

    A duration is an optionally signed sequence of decimal numbers, each
    with a unit suffix. The bare string ``"0"`` is also accepted.

    Raises:
        ValidationError: if ``text`` is not a valid duration.
    """
    invalid = ValidationError(f'invalid duration: "{text}"')
    value = text
    sign = 1.0
    if value[:1] in ("+", "-"):
        sign = -1.0 if value[0] == "-" else 1.0
        value = value[1:]

    if value == "0":
        return timedelta(0)
    if not value:
        raise invalid

    total = 0.0
    pos = 0
    while pos < len(value):
        match = _COMPONENT.match(value, pos)
        if match is None:
            raise invalid
        number, unit = match.groups()
        total += float(number) * _UNIT_SECONDS[unit]
        pos = match.end()

    if not math.isfinite(total) or total > MAX_DURATION_SECONDS:
        raise invalid
    return timedelta(seconds=sign * total)


def validate_remote_url(remote_url: str) -> str:
    """Require an absolute http(s) URL with a host."""
    try:
        parsed = urlparse(remote_url)
    except ValueError:
        raise ValidationError(f'invalid url: "{remote_url}"')

    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError(f'invalid url: "{remote_url}"')
    return remote_url


def _describe_seconds(seconds: float) -> str:
    if seconds == 60:
        return "a minute"
    return f"{seconds:g} seconds"


def build_callback(remote_url: str, delay: str, min_delay: float = 60.0) -> Callback:
    """
    Validate a callback request and build the callback it describes.

    Args:
        remote_url: Endpoint to POST to.
        delay: Duration string, how far in the future to call.
        min_delay: Smallest accepted delay in seconds.

    Raises:
        ValidationError: with the reason reported back to the client.
    """
    validate_remote_url(remote_url)
    duration = parse_duration(delay)
    if duration.total_seconds() < min_delay:
        raise ValidationError(
            f'invalid duration: "{delay}" is less than '
            f"{_describe_seconds(min_delay)} in the future"
        )
    try:
        return Callback.after(remote_url, duration)
    except OverflowError:
        raise ValidationError(f'invalid duration: "{delay}"')
