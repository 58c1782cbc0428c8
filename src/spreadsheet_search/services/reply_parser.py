"""Validate and normalize the LLM's JSON reply into a SearchResult.

The reply is untrusted: the model may wrap JSON in prose, nest objects where
strings were requested, or omit keys. Only a reply with no decodable JSON
object is an error; every other shape mismatch is absorbed by normalization.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from spreadsheet_search.utils.exceptions import MalformedReplyError

NO_DATA_ANSWER = "No spreadsheet loaded"
NO_DATA_MESSAGE = "Please upload a spreadsheet first to enable search."

# Scalar fields and the placeholder used when the reply leaves them out
SCALAR_DEFAULTS: dict[str, str] = {
    "answer": "No answer provided",
    "location": "Location not specified",
    "value": "N/A",
    "explanation": "No explanation provided",
    "calculation": "No calculation performed",
    "suggestion": "",
}

# Reply key -> SearchResult attribute
LIST_FIELDS: dict[str, str] = {
    "tabsUsed": "tabs_used",
    "alternatives": "alternatives",
}


@dataclass
class SearchResult:
    """Normalized answer to one query."""

    query: str
    answer: str
    location: str = SCALAR_DEFAULTS["location"]
    value: str = SCALAR_DEFAULTS["value"]
    explanation: str = SCALAR_DEFAULTS["explanation"]
    calculation: str = SCALAR_DEFAULTS["calculation"]
    tabs_used: list[str] = field(default_factory=list)
    alternatives: list[str] = field(default_factory=list)
    suggestion: str = ""
    is_from_collaborator: bool = True
    message: str | None = None

    @classmethod
    def no_data(cls, query: str) -> SearchResult:
        """Informational result returned when nothing is loaded."""
        return cls(
            query=query,
            answer=NO_DATA_ANSWER,
            is_from_collaborator=False,
            message=NO_DATA_MESSAGE,
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "query": self.query,
            "answer": self.answer,
            "location": self.location,
            "value": self.value,
            "explanation": self.explanation,
            "calculation": self.calculation,
            "tabs_used": list(self.tabs_used),
            "alternatives": list(self.alternatives),
            "suggestion": self.suggestion,
            "is_from_collaborator": self.is_from_collaborator,
        }
        if self.message is not None:
            result["message"] = self.message
        return result


def extract_json_object(raw: str) -> dict[str, Any]:
    """Decode the span from the first ``{`` to the last ``}`` of ``raw``.

    Raises:
        MalformedReplyError: If there is no span, it does not decode, or it
            decodes to something other than an object.
    """
    start_idx = raw.find("{")
    end_idx = raw.rfind("}") + 1
    if start_idx == -1 or end_idx <= start_idx:
        raise MalformedReplyError(response_preview=raw)

    try:
        data = json.loads(raw[start_idx:end_idx])
    except json.JSONDecodeError as e:
        raise MalformedReplyError(
            details={"parse_error": str(e)}, response_preview=raw
        ) from e

    if not isinstance(data, dict):
        raise MalformedReplyError(
            details={"received_type": type(data).__name__}, response_preview=raw
        )
    return data


def _to_text(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def normalize_scalar(value: Any, default: str) -> str:
    """Coerce a reply field to text, substituting ``default`` when empty."""
    if value is None or value == "":
        return default
    return _to_text(value)


def normalize_list(value: Any) -> list[str]:
    """Keep list fields as lists of text; anything else becomes ``[]``."""
    if not isinstance(value, list):
        return []
    return [_to_text(item) for item in value if item is not None]


def normalize_reply(query: str, data: dict[str, Any]) -> SearchResult:
    """Build a SearchResult from a decoded reply object. Never raises."""
    scalars = {
        name: normalize_scalar(data.get(name), default)
        for name, default in SCALAR_DEFAULTS.items()
    }
    lists = {
        attr: normalize_list(data.get(key)) for key, attr in LIST_FIELDS.items()
    }
    return SearchResult(query=query, is_from_collaborator=True, **scalars, **lists)


def parse_search_reply(query: str, raw: str) -> SearchResult:
    """Parse raw LLM text into a normalized SearchResult.

    Raises:
        MalformedReplyError: If ``raw`` holds no decodable JSON object.
    """
    return normalize_reply(query, extract_json_object(raw))
