"""
Input validators for values crossing the system boundary.

Round requests, usage metadata and configuration values are checked here
before they reach the orchestration layer. Each validator returns the
(possibly normalized) value or raises ValidationError with a message that is
safe to return to API clients.
"""

import json
import logging

logger = logging.getLogger(__name__)


class ValidationError(ValueError):
    """Raised when input validation fails. Message is user-facing."""


def validate_not_empty(value: str | None, field_name: str = "input") -> str:
    """Reject None, empty and whitespace-only strings. Returns the stripped value."""
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} cannot be empty")
    return value.strip()


def validate_length(
    value: str,
    field_name: str = "input",
    min_length: int = 0,
    max_length: int = 100_000,
) -> str:
    if len(value) < min_length:
        raise ValidationError(f"{field_name} must be at least {min_length} characters")
    if len(value) > max_length:
        raise ValidationError(f"{field_name} must be at most {max_length} characters")
    return value


def validate_in_choices(value: str, choices: list[str] | tuple[str, ...], field_name: str = "value") -> str:
    if value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
    return value


def validate_dict_size(data: dict, field_name: str = "data", max_size_bytes: int = 100_000) -> dict:
    """Reject dicts whose JSON encoding exceeds max_size_bytes."""
    serialized = json.dumps(data, default=str)
    if len(serialized) > max_size_bytes:
        raise ValidationError(f"{field_name} exceeds maximum size of {max_size_bytes} bytes")
    return data
