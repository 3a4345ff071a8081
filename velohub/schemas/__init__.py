"""Schema validation and definitions for velohub."""

from .definitions import (
    FILTER_SCHEMA,
    FILTER_SET_SCHEMA,
    LEGACY_FILTER_SCHEMA,
    EVENT_SCHEMA,
    HUB_INFO_SCHEMA,
)

from .validator import (
    SchemaValidator,
    ValidationError,
    validate_filter,
    get_validator,
)

__all__ = [
    'FILTER_SCHEMA',
    'FILTER_SET_SCHEMA',
    'LEGACY_FILTER_SCHEMA',
    'EVENT_SCHEMA',
    'HUB_INFO_SCHEMA',
    'SchemaValidator',
    'ValidationError',
    'validate_filter',
    'get_validator',
]
