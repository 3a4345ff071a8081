"""
JSON Schema Definitions for velohub

Strict validation at boundaries: a filter is checked before it leaves the
client, an inbound event is checked before the hub considers it.
"""

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

# Schema for a single VIP-01 filter clause
FILTER_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "ids": {
            **_STRING_LIST,
            "description": "Event ids; enables index lookup"
        },
        "authors": {
            **_STRING_LIST,
            "description": "Author identities"
        },
        "kinds": {
            **_STRING_LIST,
            "description": "Event kind codes"
        },
        "since": {
            "type": "number",
            "description": "Exclusive lower timestamp bound"
        },
        "until": {
            "type": "number",
            "description": "Exclusive upper timestamp bound"
        },
        "tags": {
            "type": "object",
            "additionalProperties": _STRING_LIST,
            "description": "Event field name -> accepted values"
        },
        "search": {
            "type": "string",
            "description": "Case-insensitive substring over tag values"
        },
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 1000,
            "description": "Client-side ceiling; the hub caps separately"
        }
    },
    "additionalProperties": False
}

# A query submission is an ordered list of filters
FILTER_SET_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "array",
    "items": FILTER_SCHEMA
}

# Legacy filters only know a subset of fields
LEGACY_FILTER_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "ids": _STRING_LIST,
        "kinds": _STRING_LIST,
        "search": {"type": "string"},
        "tags": {
            "type": "object",
            "additionalProperties": _STRING_LIST
        }
    }
}

# Schema for an event in canonical (lowercase) form
EVENT_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["from", "kind"],
    "properties": {
        "id": {"type": "string"},
        "from": {"type": "string", "minLength": 1},
        "kind": {"type": "string", "minLength": 1},
        "content": {"type": ["string", "null"]},
        "tags": {
            "type": "array",
            "items": {
                "type": "array",
                "minItems": 2,
                "maxItems": 2,
                "items": {"type": "string"}
            }
        },
        "timestamp": {"type": "integer", "minimum": 0},
        "e": {"type": ["string", "null"]},
        "p": {"type": ["string", "null"]},
        "marker": {"type": ["string", "null"]},
        "original_id": {"type": ["string", "null"]}
    }
}

# Schema for the hub's Info reply
HUB_INFO_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["User", "Spec", "Followers", "Following"],
    "properties": {
        "User": {"type": "string"},
        "Spec": {
            "type": "object",
            "required": ["type", "version", "processId"],
            "properties": {
                "type": {"type": "string"},
                "description": {"type": "string"},
                "version": {"type": "string"},
                "processId": {"type": "string"}
            }
        },
        "Followers": _STRING_LIST,
        "Following": _STRING_LIST
    }
}
