"""Security utilities -- prompt injection defense and boundary validation."""
from .prompt_guard import wrap_untrusted, detect_injection_attempt, sanitize_for_prompt
from .validators import (
    ValidationError,
    validate_dict_size,
    validate_in_choices,
    validate_length,
    validate_not_empty,
)
