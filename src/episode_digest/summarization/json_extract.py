"""Recover a JSON object from language-model text output.

Model output is untrusted: it may be wrapped in prose or code fences, or carry
trailing commas. ``extract_json_object`` never raises; it returns a
``JSONExtraction`` that callers turn into their own typed error.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from ..exceptions import AgentOutputError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_CODE_FENCE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_TRAILING_COMMA = re.compile(r",\s*([}\]])")


@dataclass
class JSONExtraction:
    """Result of a JSON extraction attempt."""

    data: Optional[Dict[str, Any]]
    success: bool
    error: Optional[str] = None
    repair_attempted: bool = False


def find_balanced_object(text: str) -> Optional[str]:
    """Return the first balanced ``{...}`` span, ignoring braces inside strings."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next opening brace
        start = text.find("{", start + 1)
    return None


def _repair_json(candidate: str) -> str:
    return _TRAILING_COMMA.sub(r"\1", candidate)


def extract_json_object(text: Optional[str]) -> JSONExtraction:
    """Parse the first JSON object found in ``text``.

    Strategies, in order: strict parse, code-fence contents, first balanced
    object, balanced object with trailing commas removed.
    """
    if not text or not text.strip():
        return JSONExtraction(data=None, success=False, error="Empty model output")

    stripped = text.strip()
    try:
        data = json.loads(stripped)
        if isinstance(data, dict):
            return JSONExtraction(data=data, success=True)
    except json.JSONDecodeError:
        pass

    fence = _CODE_FENCE.search(stripped)
    search_space = fence.group(1) if fence else stripped
    candidate = find_balanced_object(search_space)
    if candidate is None and fence:
        candidate = find_balanced_object(stripped)
    if candidate is None:
        return JSONExtraction(
            data=None, success=False, error="No JSON object found", repair_attempted=True
        )

    for attempt in (candidate, _repair_json(candidate)):
        try:
            data = json.loads(attempt)
        except json.JSONDecodeError as exc:
            last_error = str(exc)
            continue
        if isinstance(data, dict):
            return JSONExtraction(data=data, success=True, repair_attempted=True)
        last_error = "JSON value is not an object"

    logger.debug("JSON extraction failed: %s", last_error)
    return JSONExtraction(
        data=None, success=False, error=f"Invalid JSON: {last_error}", repair_attempted=True
    )


def parse_model_output(stage: str, text: Optional[str], schema: Type[ModelT]) -> ModelT:
    """Extract and validate one stage's JSON output.

    Raises:
        AgentOutputError: If no JSON object can be recovered or it fails ``schema``
    """
    extraction = extract_json_object(text)
    if not extraction.success or extraction.data is None:
        raise AgentOutputError(stage, extraction.error or "No JSON object found", raw_text=text)
    try:
        return schema.model_validate(extraction.data)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ())) or "payload"
        raise AgentOutputError(
            stage,
            f"schema validation failed at {location}: {first.get('msg', str(exc))}",
            raw_text=text,
        ) from exc
