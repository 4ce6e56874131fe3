"""Parsing and checking of raw attribute-extraction replies."""

import json
from typing import Any, Dict, List

from pydantic import ValidationError

from llm_extraction.schema import ProductAttributes

_PLACEHOLDERS = frozenset({"", "null", "none", "unknown", "n/a", "na", "-"})


class LLMOutputValidationError(Exception):
    """A reply that could not be turned into ``ProductAttributes``.

    ``stage`` is ``json_parse`` when no JSON object could be read and
    ``schema`` when the object does not fit the attribute schema.
    """

    def __init__(self, stage: str, errors: List[str], raw_response: str) -> None:
        self.stage = stage
        self.errors = errors
        self.raw_response = raw_response
        super().__init__(f"{stage}: " + "; ".join(errors))


def _extract_object(text: str) -> str:
    """Slice the outermost ``{...}`` out of fenced or chatty replies."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        return text.strip()
    return text[start : end + 1]


def _clean_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    cleaned: Dict[str, Any] = {}
    for key in ProductAttributes.model_fields:
        if key not in data:
            continue
        value = data[key]
        if isinstance(value, str) and value.strip().lower() in _PLACEHOLDERS:
            value = None
        if value is not None:
            cleaned[key] = value
    return cleaned


def validate_llm_output(raw_response: str) -> ProductAttributes:
    """Parse a model reply into validated product attributes.

    Unknown keys are dropped and placeholder strings such as "unknown" or
    "n/a" count as missing values.

    Raises:
        LLMOutputValidationError: If no JSON object can be parsed or the
            object fails schema validation.
    """
    try:
        data = json.loads(_extract_object(raw_response or ""))
    except json.JSONDecodeError as exc:
        raise LLMOutputValidationError("json_parse", [str(exc)], raw_response) from exc

    if not isinstance(data, dict):
        raise LLMOutputValidationError("json_parse", ["reply is not a JSON object"], raw_response)

    try:
        return ProductAttributes.model_validate(_clean_payload(data))
    except ValidationError as exc:
        errors = [
            "{}: {}".format(".".join(str(part) for part in error["loc"]) or "reply", error["msg"])
            for error in exc.errors()
        ]
        raise LLMOutputValidationError("schema", errors, raw_response) from exc
