"""
Completion extraction, JSON recovery, and curation-output validation.

No I/O occurs here; all functions are pure transformations of strings/dicts
to support easy unit testing.  Parsing runs in a fixed order: strict parse →
fenced-block strip → first balanced ``{...}`` span → schema validation.
"""

from __future__ import annotations

import json
import re

from .errors import EmptyResponse, MalformedOutput, SchemaViolation
from .models import CurationOutput

# Wire names accepted for each output field, preferred name first.
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "corrected_topic": ("corrected_topic",),
    "statement": ("statement", "statement_latex"),
    "options": ("options", "options_latex"),
    "correct_option_index": ("correct_option_index",),
    "hint": ("hint",),
    "remark": ("remark", "remarks"),
}

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*\n?(.*?)\n?```", re.DOTALL)


def extract_response_content(response_json: dict) -> str:
    """
    Extract the completion text from an OpenAI-compatible response.

    Args:
        response_json: Decoded response body.

    Returns:
        The ``choices[0].message.content`` string, stripped.

    Raises:
        EmptyResponse: No choices, no message, or blank content.
        MalformedOutput: ``choices`` or its first message has the wrong shape.
    """
    if not isinstance(response_json, dict):
        raise MalformedOutput("response body is not a JSON object")
    choices = response_json.get("choices")
    if not choices:
        raise EmptyResponse("response contains no choices")
    if not isinstance(choices, list):
        raise MalformedOutput(f"choices is a {type(choices).__name__}, expected a list")

    first = choices[0]
    if first is None:
        raise EmptyResponse("first choice is null")
    if not isinstance(first, dict):
        raise MalformedOutput(f"first choice is a {type(first).__name__}, expected an object")

    message = first.get("message")
    if message is None:
        raise EmptyResponse("first choice has no message")
    if not isinstance(message, dict):
        raise MalformedOutput(f"message is a {type(message).__name__}, expected an object")

    content = message.get("content")
    if not isinstance(content, str) or not content.strip():
        raise EmptyResponse("completion content is empty")
    return content.strip()


def find_json_object(text: str) -> str | None:
    """
    Return the first balanced ``{...}`` span in ``text``.

    Braces inside JSON string literals are ignored, so prose such as
    ``Here you go: {"a": "}"} hope it helps`` yields ``{"a": "}"}``.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        # Unbalanced from this brace; try the next opening brace.
        start = text.find("{", start + 1)
    return None


def parse_json_object(content: str) -> dict:
    """
    Parse a completion into a dict, tolerating fences and surrounding prose.

    Args:
        content: Raw completion text.

    Returns:
        The decoded JSON object.

    Raises:
        MalformedOutput: No JSON object could be recovered.
    """
    candidates = [content.strip()]

    fence = _FENCE_RE.search(content)
    if fence:
        candidates.append(fence.group(1).strip())

    embedded = find_json_object(content)
    if embedded:
        candidates.append(embedded)

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed

    raise MalformedOutput(f"no JSON object found in completion: {content[:120]!r}")


def _pick(data: dict, name: str):
    for alias in FIELD_ALIASES[name]:
        if alias in data:
            return data[alias]
    return None


def _non_empty_str(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_curation_output(data: dict) -> CurationOutput:
    """
    Check required fields and build a :class:`CurationOutput`.

    Required: non-empty ``corrected_topic``, ``statement`` and ``hint``;
    a non-empty list of non-empty strings ``options``; an integer
    ``correct_option_index`` within the bounds of ``options``.

    Raises:
        SchemaViolation: Listing every problem found.
    """
    problems: list[str] = []

    topic = _pick(data, "corrected_topic")
    statement = _pick(data, "statement")
    options = _pick(data, "options")
    index = _pick(data, "correct_option_index")
    hint = _pick(data, "hint")
    remark = _pick(data, "remark")

    if not _non_empty_str(topic):
        problems.append("corrected_topic missing or empty")
    if not _non_empty_str(statement):
        problems.append("statement missing or empty")
    if not _non_empty_str(hint):
        problems.append("hint missing or empty")

    options_ok = (
        isinstance(options, list)
        and len(options) > 0
        and all(_non_empty_str(opt) for opt in options)
    )
    if not options_ok:
        problems.append("options must be a non-empty list of non-empty strings")

    if index is None:
        problems.append("correct_option_index missing")
    elif isinstance(index, bool) or not isinstance(index, int):
        problems.append(f"correct_option_index is not an integer: {index!r}")
    elif options_ok and not 0 <= index < len(options):
        problems.append(
            f"correct_option_index {index} out of range for {len(options)} options"
        )

    if problems:
        raise SchemaViolation("; ".join(problems))

    flags = {
        key: value
        for key, value in data.items()
        if key.startswith("is") and isinstance(value, bool)
    }

    return CurationOutput(
        corrected_topic=topic.strip(),
        statement=statement,
        options=list(options),
        correct_option_index=index,
        hint=hint,
        remark=remark if _non_empty_str(remark) else None,
        flags=flags,
    )


def parse_curation_response(response_json: dict) -> CurationOutput:
    """
    Full parse of a chat completion response body.

    Raises:
        EmptyResponse, MalformedOutput, SchemaViolation
    """
    content = extract_response_content(response_json)
    return validate_curation_output(parse_json_object(content))
