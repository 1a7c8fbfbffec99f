from functools import lru_cache
from typing import Any

from jsonschema import Draft202012Validator

CONTENT_MODES = ["string", "regex", "line_range", "full_file", "json_path"]

RULE_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "$ref": "#/$defs/node",
    "$defs": {
        "stringList": {"type": "array", "items": {"type": "string"}},
        "globList": {
            "oneOf": [
                {"type": "string"},
                {"$ref": "#/$defs/stringList"},
            ]
        },
        "contentRule": {
            "type": "object",
            "required": ["mode"],
            "properties": {
                "mode": {"enum": CONTENT_MODES},
                "patterns": {"$ref": "#/$defs/stringList"},
                "pattern": {"type": "string", "minLength": 1},
                "flags": {"type": "string"},
                "start": {"type": "integer"},
                "end": {"type": "integer"},
                "paths": {"$ref": "#/$defs/stringList"},
            },
            "allOf": [
                {
                    "if": {"properties": {"mode": {"const": "string"}}},
                    "then": {"required": ["patterns"]},
                },
                {
                    "if": {"properties": {"mode": {"const": "regex"}}},
                    "then": {"required": ["pattern"]},
                },
                {
                    "if": {"properties": {"mode": {"const": "line_range"}}},
                    "then": {"required": ["start", "end"]},
                },
                {
                    "if": {"properties": {"mode": {"const": "json_path"}}},
                    "then": {"required": ["paths"]},
                },
            ],
        },
        "node": {
            "type": "object",
            "properties": {
                "match_mode": {"enum": ["any", "all"]},
                "conditions": {"type": "array", "items": {"$ref": "#/$defs/node"}},
                "type": {"const": "file"},
                "pattern": {"type": "string", "minLength": 1},
                "exclude": {"$ref": "#/$defs/globList"},
                "content_rules": {
                    "type": "array",
                    "items": {"$ref": "#/$defs/contentRule"},
                },
            },
        },
    },
}


@lru_cache(maxsize=1)
def rule_validator() -> Draft202012Validator:
    return Draft202012Validator(RULE_SCHEMA)


def schema_error_message(error: Any) -> str:
    path = ".".join([str(part) for part in error.path])
    return f"{error.message} at {path}" if path else str(error.message)
