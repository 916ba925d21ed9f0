"""JSON-schema cleaning for OpenAI function definitions.

Some OpenAI-compatible providers reject meta/documentation keys inside
function parameter schemas. ``clean_schema`` strips them at every object
level without touching the caller's schema.
"""

from typing import Any

BANNED_KEYS = frozenset({"$schema", "additionalProperties", "title", "examples"})


def clean_schema(schema: Any) -> Any:
    """Return a copy of ``schema`` without unsupported keys.

    Rules, applied to every dict:
    - drop ``$schema``, ``additionalProperties``, ``title``, ``examples``
    - drop ``format`` when the same object has ``type == "string"``
    - recurse into ``properties``, ``items`` and any other nested dict

    Lists are left as-is except through ``items``. Non-dict input is
    returned unchanged.
    """
    if not isinstance(schema, dict):
        return schema

    cleaned: dict[str, Any] = {}
    for key, value in schema.items():
        if key in BANNED_KEYS:
            continue
        if key == "format" and schema.get("type") == "string":
            continue
        if isinstance(value, dict):
            # "properties", "items" and any other nested object get the same rules.
            # A property literally named like a banned key is dropped too.
            cleaned[key] = clean_schema(value)
        else:
            cleaned[key] = value
    return cleaned
