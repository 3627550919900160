"""Free-text → PortfolioAdvisory parsing.

The reply is expected to be one JSON object, but models often wrap it in
markdown fences or add prose around it. We strip fences, take everything
from the first ``{`` to the last ``}`` and validate the result.
"""
from __future__ import annotations

import json
import re

from pydantic import ValidationError

from yieldpilot.advisory.models import AdvisoryReply, PortfolioAdvisory

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


class AdvisoryParseError(ValueError):
    """The reply did not contain a usable advisory object."""


def strip_code_fences(text: str) -> str:
    return _FENCE_RE.sub("", text).strip()


def extract_json_object(text: str) -> str:
    """Return the greedy ``{...}`` span of ``text`` (first ``{`` to last ``}``)."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise AdvisoryParseError("No JSON object found in reply")
    return text[start : end + 1]


def parse_advisory(text: str) -> PortfolioAdvisory:
    """Parse a reasoning-service reply. Raises AdvisoryParseError on any defect."""
    candidate = extract_json_object(strip_code_fences(text))
    try:
        data = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise AdvisoryParseError(f"Invalid JSON in reply: {exc}") from exc
    if not isinstance(data, dict):
        raise AdvisoryParseError("Reply JSON is not an object")
    try:
        return AdvisoryReply.model_validate(data).to_advisory()
    except ValidationError as exc:
        raise AdvisoryParseError(f"Reply missing required fields: {exc}") from exc
