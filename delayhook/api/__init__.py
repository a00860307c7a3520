"""HTTP surface for registering callbacks."""

from .app import create_app
from .validation import build_callback, parse_duration, validate_remote_url

__all__ = ["build_callback", "create_app", "parse_duration", "validate_remote_url"]
