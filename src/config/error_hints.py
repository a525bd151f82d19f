"""Error hints for configuration validation errors.

Maps Pydantic error types and engine config keys to short hints shown
by `feedrank validate-config`.
"""

from typing import Final


ERROR_HINTS: Final[dict[str, str]] = {
    "missing": "Required key is absent from the engine config.",
    "extra_forbidden": "Unknown key; engine config sections reject unrecognized options.",
    "int_type": "Expected a whole number.",
    "int_parsing": "Expected a whole number.",
    "float_type": "Expected a number such as 0.25.",
    "float_parsing": "Expected a number such as 0.25.",
    "string_type": "Expected a string.",
    "bool_type": "Expected true or false.",
    "list_type": "Expected a YAML list.",
    "dict_type": "Expected a mapping of key: value pairs.",
    "greater_than": "Must be above zero.",
    "greater_than_equal": "Below the allowed minimum.",
    "less_than_equal": "Above the allowed maximum.",
    "value_error": "Rejected by a cross-field check (see the message).",
    "file_not_found": "No config file at this path.",
    "yaml_parse_error": "The file is not valid YAML; check indentation.",
}

FIELD_HINTS: Final[dict[str, str]] = {
    "half_life_days": "Must be a positive number of days (e.g. 30).",
    "weights": "Map counter names such as view_count or stars_count to weights.",
    "hot_ratio": "Must be between 0.0 and 1.0; all bucket ratios together <= 1.0.",
    "latest_ratio": "Must be between 0.0 and 1.0; all bucket ratios together <= 1.0.",
    "personalized_ratio": "Must be between 0.0 and 1.0; all bucket ratios together <= 1.0.",
    "max_take": "Must be between 1 and 1000.",
    "sync_fetch_limit": "Must be between 1 and 1000.",
    "shuffle_seed": "Must be an integer, or omitted for a random shuffle.",
}


def get_error_hint(error_type: str, field_name: str | None = None) -> str:
    """Get a user-friendly hint for a validation error.

    Args:
        error_type: The Pydantic error type (e.g., 'missing', 'greater_than').
        field_name: Optional dotted field path for field-specific hints.

    Returns:
        The field hint if one exists, else the error-type hint.
    """
    if field_name:
        simple_field = field_name.split(".")[-1]
        if simple_field in FIELD_HINTS:
            return FIELD_HINTS[simple_field]

    return ERROR_HINTS.get(
        error_type, "Check the configuration documentation for valid values."
    )


def format_validation_error(
    location: str,
    message: str,
    error_type: str,
    *,
    include_hint: bool = True,
) -> str:
    """Format a validation error with optional hint.

    Args:
        location: The error location (e.g., 'feed.hot_ratio').
        message: The original error message.
        error_type: The error type.
        include_hint: Whether to include a hint.

    Returns:
        Formatted error string.
    """
    base = f"{location}: {message}"
    if include_hint:
        hint = get_error_hint(error_type, location)
        return f"{base}\n    Hint: {hint}"
    return base
