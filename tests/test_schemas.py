"""Tests for response schemas and validation."""
from __future__ import annotations

import json

import pytest

from conftest import STAGE_PAYLOADS
from passage_workbook.schemas import (
    ANALYSIS_SCHEMA,
    EXPANDED_VOCABULARY_SCHEMA,
    MULTIPLE_CHOICE_SCHEMA,
    PARAGRAPH_SCRAMBLE_SCHEMA,
    SENTENCE_SCRAMBLE_SCHEMA,
    TRANSLATION_SCHEMA,
    VOCABULARY_SCHEMA,
    schema_to_json,
    validate,
    validate_paragraph_order,
)

SCHEMAS = {
    "vocabulary": VOCABULARY_SCHEMA,
    "translatedSentences": TRANSLATION_SCHEMA,
    "multipleChoiceWorksheet": MULTIPLE_CHOICE_SCHEMA,
    "sentenceScrambleWorksheet": SENTENCE_SCRAMBLE_SCHEMA,
    "paragraphScrambleWorksheet": PARAGRAPH_SCRAMBLE_SCHEMA,
    "analysis": ANALYSIS_SCHEMA,
    "expandedVocabulary": EXPANDED_VOCABULARY_SCHEMA,
}


class TestValidate:
    @pytest.mark.parametrize("stage", sorted(SCHEMAS))
    def test_stage_payloads_conform(self, stage):
        assert validate(STAGE_PAYLOADS[stage], SCHEMAS[stage]) is None

    def test_empty_list_is_valid(self):
        assert validate([], VOCABULARY_SCHEMA) is None

    def test_wrong_top_level_type(self):
        assert validate({"word": "cat"}, VOCABULARY_SCHEMA) == "$: expected array, got dict"

    def test_missing_fields_named(self):
        reason = validate([{"word": "cat"}], VOCABULARY_SCHEMA)
        assert reason == "$[0]: missing fields: meaning"

    def test_nested_type_mismatch(self):
        reason = validate([{"word": 3, "meaning": "셋"}], VOCABULARY_SCHEMA)
        assert reason == "$[0].word: expected string, got int"

    def test_integer_rejects_bool_and_float(self):
        base = {"scrambledParagraphs": ["a", "b"]}
        assert validate({**base, "correctOrder": [True, 0]}, PARAGRAPH_SCRAMBLE_SCHEMA)
        assert validate({**base, "correctOrder": [1.0, 0]}, PARAGRAPH_SCRAMBLE_SCHEMA)

    def test_extra_keys_ignored(self):
        assert validate([{"word": "cat", "meaning": "고양이", "pos": "noun"}], VOCABULARY_SCHEMA) is None

    def test_string_list_items_checked(self):
        data = dict(STAGE_PAYLOADS["analysis"], textFlow=["ok", None])
        assert validate(data, ANALYSIS_SCHEMA) == "$.textFlow[1]: expected string, got NoneType"


class TestParagraphOrder:
    def test_permutation(self):
        assert validate_paragraph_order({"scrambledParagraphs": ["a", "b", "c"], "correctOrder": [2, 0, 1]}) is None

    @pytest.mark.parametrize("order", [[0, 0, 1], [0, 1], [1, 2, 3], [0, 1, 2, 3]])
    def test_not_a_permutation(self, order):
        reason = validate_paragraph_order({"scrambledParagraphs": ["a", "b", "c"], "correctOrder": order})
        assert "not a permutation" in reason


class TestSchemaToJson:
    def test_parses_back(self):
        assert json.loads(schema_to_json(MULTIPLE_CHOICE_SCHEMA)) == MULTIPLE_CHOICE_SCHEMA

    def test_choice_description_included(self):
        assert "[choiceA/choiceB]" in schema_to_json(MULTIPLE_CHOICE_SCHEMA)
