"""Tests for parsing streamed JSON prefixes and validating generated objects."""

import pytest
from pydantic import ValidationError

from nodeflow.llm import ARTIFACT_SCHEMA
from nodeflow.llm.litellm import parse_partial_object
from nodeflow.llm.provider import output_model


@pytest.mark.parametrize(
    "text,expected",
    [
        ('{"title": "Hel', {"title": "Hel"}),
        ('{"title": "Hi", "con', {"title": "Hi"}),
        ('{"title": "Hi", "content":', {"title": "Hi"}),
        ('{"a": [1, 2', {"a": [1, 2]}),
        ('{"a": {"b": "c', {"a": {"b": "c"}}),
        ("{", {}),
    ],
)
def test_prefixes(text, expected):
    assert parse_partial_object(text) == expected


def test_complete_document_unchanged():
    assert parse_partial_object('{"title": "T", "n": 1}') == {"title": "T", "n": 1}


def test_escaped_quote_inside_string():
    assert parse_partial_object('{"content": "say \\"hi') == {"content": 'say "hi'}


def test_braces_inside_strings_are_text():
    assert parse_partial_object('{"content": "a { b [') == {"content": "a { b ["}


def test_nothing_streamed_yet():
    assert parse_partial_object("") is None


class TestOutputModel:
    def test_artifact_object_accepted(self):
        obj = {"plan": "p", "title": "T", "content": "C", "description": "d"}
        assert output_model(ARTIFACT_SCHEMA).model_validate(obj).title == "T"

    def test_missing_and_mistyped_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            output_model(ARTIFACT_SCHEMA).model_validate({"title": "T", "content": 5})

        failed = {error["loc"][0] for error in exc_info.value.errors()}
        assert failed == {"plan", "content", "description"}

    def test_extra_keys_forbidden(self):
        obj = {"plan": "p", "title": "T", "content": "C", "description": "d", "mood": "x"}
        with pytest.raises(ValidationError):
            output_model(ARTIFACT_SCHEMA).model_validate(obj)

    def test_custom_schema_types(self):
        schema = {
            "type": "object",
            "properties": {
                "score": {"type": "integer"},
                "tags": {"type": "array"},
                "note": {"type": "string"},
            },
            "required": ["score", "tags"],
        }
        model = output_model(schema)

        assert model.model_validate({"score": 3, "tags": ["a"]}).note is None
        with pytest.raises(ValidationError):
            model.model_validate({"score": "3", "tags": ["a"]})
        with pytest.raises(ValidationError):
            model.model_validate({"score": 3, "tags": "a"})

    def test_models_are_cached_per_schema(self):
        assert output_model(dict(ARTIFACT_SCHEMA)) is output_model(ARTIFACT_SCHEMA)
