"""Tests for LLM reply parsing and normalization."""

from __future__ import annotations

import json

import pytest

from spreadsheet_search.services.reply_parser import (
    NO_DATA_ANSWER,
    NO_DATA_MESSAGE,
    SearchResult,
    extract_json_object,
    normalize_list,
    normalize_scalar,
    parse_search_reply,
)
from spreadsheet_search.utils.exceptions import ErrorCode, MalformedReplyError


class TestExtractJsonObject:
    """Tests for locating the JSON object in raw text."""

    def test_plain_object(self) -> None:
        assert extract_json_object('{"answer": "42"}') == {"answer": "42"}

    def test_object_wrapped_in_prose_and_fences(self) -> None:
        raw = 'Here you go:\n```json\n{"answer": "42", "tabsUsed": ["S"]}\n```\n'
        assert extract_json_object(raw) == {"answer": "42", "tabsUsed": ["S"]}

    @pytest.mark.parametrize("raw", ["", "no json here", "} backwards {"])
    def test_no_span(self, raw: str) -> None:
        with pytest.raises(MalformedReplyError) as exc_info:
            extract_json_object(raw)
        assert exc_info.value.error_code == ErrorCode.MALFORMED_REPLY

    def test_undecodable_span(self) -> None:
        with pytest.raises(MalformedReplyError) as exc_info:
            extract_json_object("{answer: 42}")
        assert "parse_error" in exc_info.value.details
        assert isinstance(exc_info.value.__cause__, json.JSONDecodeError)

    def test_preview_kept(self) -> None:
        with pytest.raises(MalformedReplyError) as exc_info:
            extract_json_object("sorry, I cannot help")
        assert exc_info.value.details["response_preview"] == "sorry, I cannot help"


class TestNormalization:
    """Tests for field normalization."""

    def test_scalar_defaults(self) -> None:
        assert normalize_scalar(None, "N/A") == "N/A"
        assert normalize_scalar("", "N/A") == "N/A"

    def test_scalar_coercion(self) -> None:
        assert normalize_scalar(42, "N/A") == "42"
        assert normalize_scalar(0, "N/A") == "0"
        assert normalize_scalar(3.5, "N/A") == "3.5"
        assert normalize_scalar(False, "N/A") == "false"
        assert normalize_scalar({"x": 1}, "N/A") == '{"x":1}'
        assert normalize_scalar(["a", 1], "N/A") == '["a",1]'

    def test_non_ascii_preserved(self) -> None:
        assert normalize_scalar({"city": "Zürich"}, "") == '{"city":"Zürich"}'

    def test_lists(self) -> None:
        assert normalize_list(["Sales", 2, None, {"k": "v"}]) == [
            "Sales",
            "2",
            '{"k":"v"}',
        ]

    @pytest.mark.parametrize("value", [None, "Sales", {"a": 1}, 3])
    def test_non_lists_become_empty(self, value: object) -> None:
        assert normalize_list(value) == []


class TestParseSearchReply:
    """Tests for the full parse."""

    def test_object_value_and_defaults(self) -> None:
        result = parse_search_reply("q", '{"answer":"42","value":{"x":1}}')

        assert result == SearchResult(
            query="q",
            answer="42",
            location="Location not specified",
            value='{"x":1}',
            explanation="No explanation provided",
            calculation="No calculation performed",
            tabs_used=[],
            alternatives=[],
            suggestion="",
            is_from_collaborator=True,
        )

    def test_full_reply(self, valid_reply: str) -> None:
        result = parse_search_reply("total revenue?", valid_reply)

        assert result.answer == "Total revenue is 450"
        assert result.location == "Sales!C4"
        assert result.tabs_used == ["Sales"]
        assert result.alternatives == ["North leads with 300"]
        assert result.suggestion == "Track revenue by quarter"
        assert result.is_from_collaborator

    def test_empty_object_gets_every_default(self) -> None:
        result = parse_search_reply("q", "{}")
        assert result.answer == "No answer provided"
        assert result.value == "N/A"

    def test_tabs_used_string_becomes_empty_list(self) -> None:
        result = parse_search_reply("q", '{"answer": "a", "tabsUsed": "Sales"}')
        assert result.tabs_used == []

    def test_top_level_array_rejected(self) -> None:
        with pytest.raises(MalformedReplyError):
            parse_search_reply("q", '[{"answer": "a"}]')


class TestSearchResult:
    """Tests for the result record."""

    def test_no_data_result(self) -> None:
        result = SearchResult.no_data("revenue?")

        assert result.answer == NO_DATA_ANSWER
        assert result.message == NO_DATA_MESSAGE
        assert not result.is_from_collaborator
        assert result.to_dict()["message"] == NO_DATA_MESSAGE

    def test_to_dict_omits_message_when_unset(self, valid_reply: str) -> None:
        data = parse_search_reply("q", valid_reply).to_dict()

        assert "message" not in data
        assert data["tabs_used"] == ["Sales"]
        assert set(data) == {
            "query",
            "answer",
            "location",
            "value",
            "explanation",
            "calculation",
            "tabs_used",
            "alternatives",
            "suggestion",
            "is_from_collaborator",
        }
