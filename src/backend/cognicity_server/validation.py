"""Validation routines for user input and query parameters.

Everything here runs before a query is built, so a bad parameter is reported
as a ValidationError without touching the database.
"""
import math
import re
from datetime import datetime, timezone

from .errors import ValidationError

_LAYER_NAME = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')


def is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_number_parameter(param, min_value=None, max_value=None):
    """Return True if `param` is a real number, not NaN, and within the optional bounds."""
    if not is_number(param):
        return False
    if math.isnan(param):
        return False
    if min_value is not None and param < min_value:
        return False
    if max_value is not None and param > max_value:
        return False
    return True


def require_timestamp(field, value):
    if not is_number(value) or not math.isfinite(value):
        raise ValidationError(field, f"'{field}' must be a finite unix timestamp")
    return value


def require_layer(field, value):
    # Layer names are interpolated into SQL text, so only plain identifiers pass.
    if not isinstance(value, str) or not _LAYER_NAME.match(value):
        raise ValidationError(field, f"'{field}' must be a non-empty layer name")
    return value


def require_window(window, field='window'):
    if window is None:
        raise ValidationError(field, f"'{field}' is required")
    require_timestamp(f'{field}.start', getattr(window, 'start', None))
    require_timestamp(f'{field}.end', getattr(window, 'end', None))
    if window.start > window.end:
        raise ValidationError(field, f"'{field}' start must not be after its end")
    return window


def parse_iso8601(value):
    """Parse an ISO8601 string to unix seconds, or None if it isn't one."""
    if not isinstance(value, str) or not value:
        return None
    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())
