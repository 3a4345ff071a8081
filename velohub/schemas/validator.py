"""Schema validation using jsonschema (mature library)."""
from typing import Any, Dict, List, Optional

from jsonschema import Draft7Validator

from .definitions import (
    EVENT_SCHEMA,
    FILTER_SCHEMA,
    FILTER_SET_SCHEMA,
    HUB_INFO_SCHEMA,
    LEGACY_FILTER_SCHEMA,
)


class ValidationError(Exception):
    """Raised when schema validation fails."""

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class SchemaValidator:
    """Validate messages against JSON schemas using jsonschema library."""

    SCHEMAS = {
        'filter': FILTER_SCHEMA,
        'filter_set': FILTER_SET_SCHEMA,
        'legacy_filter': LEGACY_FILTER_SCHEMA,
        'event': EVENT_SCHEMA,
        'hub_info': HUB_INFO_SCHEMA,
    }

    def __init__(self):
        self._cache: Dict[str, Draft7Validator] = {}

    def _validator(self, schema_name: str) -> Optional[Draft7Validator]:
        if schema_name not in self._cache:
            schema = self.SCHEMAS.get(schema_name)
            if schema is None:
                return None
            self._cache[schema_name] = Draft7Validator(schema)
        return self._cache[schema_name]

    def errors(self, data: Any, schema_name: str) -> List[str]:
        """Return every violation as 'message at path'; empty when valid."""
        validator = self._validator(schema_name)
        if validator is None:
            return [f"Unknown schema: {schema_name}"]
        return [
            f"{e.message} at {list(e.path)}"
            for e in sorted(validator.iter_errors(data), key=lambda e: list(e.path))
        ]

    def validate(self, data: Any, schema_name: str) -> tuple[bool, Optional[str]]:
        """
        Validate data against a named schema.

        Returns: (is_valid, error_message)
        """
        errors = self.errors(data, schema_name)
        if errors:
            return False, f"Validation error: {errors[0]}"
        return True, None

    def check(self, data: Any, schema_name: str) -> None:
        """Raise ValidationError listing all violations."""
        errors = self.errors(data, schema_name)
        if errors:
            raise ValidationError(f"Invalid {schema_name}: {errors[0]}", errors)

    def validate_filter(self, data: Any) -> tuple[bool, Optional[str]]:
        """Quick validate for a single filter clause."""
        return self.validate(data, 'filter')

    def validate_event(self, data: Any) -> tuple[bool, Optional[str]]:
        """Quick validate for canonical event dicts."""
        return self.validate(data, 'event')


# Module-level validator for convenience
_default_validator = None


def get_validator() -> SchemaValidator:
    """Get singleton validator instance."""
    global _default_validator
    if _default_validator is None:
        _default_validator = SchemaValidator()
    return _default_validator


def validate_filter(data: Any) -> tuple[bool, Optional[str]]:
    """Module-level convenience function."""
    return get_validator().validate_filter(data)
