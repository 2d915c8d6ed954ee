"""Result shapes for each generation stage, declared as plain data.

The descriptors use the JSON Schema vocabulary (``type``, ``properties``,
``items``, ``required``, ``description``) so the same dicts can be handed to a
model API for constrained decoding and used here to validate the response.
"""
from __future__ import annotations

import json
from typing import Any

STRING = {"type": "string"}
STRING_LIST = {"type": "array", "items": STRING}


def _object(properties: dict, required: list[str] | None = None) -> dict:
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties) if required is None else required,
    }


def _list_of(item: dict) -> dict:
    return {"type": "array", "items": item}


VOCABULARY_SCHEMA = _list_of(_object({"word": STRING, "meaning": STRING}))

TRANSLATION_SCHEMA = _list_of(_object({"english": STRING, "korean": STRING}))

MULTIPLE_CHOICE_SCHEMA = _list_of(_object({
    "sentence": {
        "type": "string",
        "description": "The sentence containing choices like '[choiceA/choiceB]'.",
    },
    "answer": STRING,
}))

SENTENCE_SCRAMBLE_SCHEMA = _list_of(_object({"scrambled": STRING_LIST, "correct": STRING}))

PARAGRAPH_SCRAMBLE_SCHEMA = _object({
    "scrambledParagraphs": STRING_LIST,
    "correctOrder": {"type": "array", "items": {"type": "integer"}},
})

ANALYSIS_SCHEMA = _object({
    "koreanTopic": STRING,
    "englishTitle": STRING,
    "koreanSummary": STRING,
    "textFlow": STRING_LIST,
})

EXPANDED_VOCABULARY_SCHEMA = _list_of(_object({
    "word": STRING,
    "definition": STRING,
    "synonym": STRING,
    "antonym": STRING,
}))


_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


def validate(value: Any, schema: dict, path: str = "$") -> str | None:
    """Check *value* against *schema*.

    Returns ``None`` when it conforms, or a reason string naming the first
    offending path.  Keys not declared in ``properties`` are ignored.
    """
    expected = schema.get("type")
    check = _TYPE_CHECKS.get(expected)
    if check is None:
        return f"{path}: unsupported schema type {expected!r}"
    if not check(value):
        return f"{path}: expected {expected}, got {type(value).__name__}"

    if expected == "object":
        missing = [k for k in schema.get("required", []) if k not in value]
        if missing:
            return f"{path}: missing fields: {', '.join(missing)}"
        for key, sub in schema.get("properties", {}).items():
            if key in value:
                reason = validate(value[key], sub, f"{path}.{key}")
                if reason:
                    return reason
    elif expected == "array" and "items" in schema:
        for i, item in enumerate(value):
            reason = validate(item, schema["items"], f"{path}[{i}]")
            if reason:
                return reason
    return None


def validate_paragraph_order(data: dict) -> str | None:
    """``correctOrder`` must be a permutation of the paragraph indices."""
    n = len(data["scrambledParagraphs"])
    order = data["correctOrder"]
    if sorted(order) != list(range(n)):
        return f"correctOrder {order} is not a permutation of 0..{n - 1}"
    return None


def schema_to_json(schema: dict) -> str:
    return json.dumps(schema, indent=2, ensure_ascii=False)
