"""Tests for client payload normalization."""
import json
import re

import pytest
from pydantic import ValidationError

from chatrelay.chat.sanitizer import (
    MAX_NAME_LENGTH,
    MAX_TEXT_LENGTH,
    clean_display_name,
    generate_message_id,
    is_blank,
    sanitize_message,
)

ID_PATTERN = re.compile(r"^\d+-[0-9a-f]{6}$")


class TestSanitizeMessage:
    def test_well_formed_payload_passes_through(self):
        msg = sanitize_message({
            "id": "abc-1",
            "user": "Alice",
            "text": "hello",
            "ts": 1700000000000,
            "uid": "device-7",
        })
        assert msg.id == "abc-1"
        assert msg.user == "Alice"
        assert msg.text == "hello"
        assert msg.ts == 1700000000000
        assert msg.uid == "device-7"

    def test_null_user_and_oversized_text(self):
        msg = sanitize_message({"user": None, "text": "x" * 5000}, max_text_length=2000)
        assert msg.user == "Anonymous"
        assert len(msg.text) == 2000

    def test_default_text_bound_is_4000(self):
        msg = sanitize_message({"text": "y" * 5000})
        assert MAX_TEXT_LENGTH == 4000
        assert len(msg.text) == 4000

    def test_user_truncated_to_30(self):
        msg = sanitize_message({"user": "n" * 100, "text": "hi"})
        assert msg.user == "n" * MAX_NAME_LENGTH

    @pytest.mark.parametrize("raw", [None, "just a string", 42, ["a", "b"], 3.5])
    def test_non_mapping_input_degrades_to_defaults(self, raw):
        msg = sanitize_message(raw, now=1234)
        assert msg.user == "Anonymous"
        assert msg.text == ""
        assert msg.uid == ""
        assert msg.ts == 1234
        assert ID_PATTERN.match(msg.id)

    def test_wrong_typed_fields_are_coerced(self):
        msg = sanitize_message({"user": 12345, "text": 678, "uid": 9})
        assert msg.user == "12345"
        assert msg.text == "678"
        assert msg.uid == "9"

    def test_generated_id_when_missing_or_empty(self):
        for raw in ({}, {"id": ""}, {"id": None}):
            msg = sanitize_message(raw, now=1700000000000)
            assert msg.id.startswith("1700000000000-")
            assert ID_PATTERN.match(msg.id)

    def test_integer_id_is_accepted(self):
        assert sanitize_message({"id": 77}).id == "77"

    @pytest.mark.parametrize("bad_id", [True, {"a": 1}, ["x"], "z" * 65])
    def test_unusable_id_is_replaced(self, bad_id):
        msg = sanitize_message({"id": bad_id})
        assert ID_PATTERN.match(msg.id)

    def test_timestamp_defaults_to_now(self):
        msg = sanitize_message({"text": "hi"}, now=42)
        assert msg.ts == 42

    @pytest.mark.parametrize("bad_ts", ["yesterday", True, -5, 0, float("nan"), float("inf")])
    def test_invalid_timestamp_replaced(self, bad_ts):
        msg = sanitize_message({"ts": bad_ts}, now=99)
        assert msg.ts == 99

    def test_float_timestamp_is_truncated_to_int(self):
        assert sanitize_message({"ts": 1700000000000.9}).ts == 1700000000000

    def test_blank_user_falls_back_to_anonymous(self):
        assert sanitize_message({"user": "    "}).user == "Anonymous"

    def test_bounds_hold_for_odd_inputs(self):
        payloads = [
            {"user": ["x"] * 100, "text": {"k": "v" * 10000}},
            {"user": "é" * 50, "text": "🙂" * 4500},
            {"user": False, "text": False},
        ]
        for raw in payloads:
            msg = sanitize_message(raw)
            assert len(msg.user) <= MAX_NAME_LENGTH
            assert len(msg.text) <= MAX_TEXT_LENGTH

    def test_lone_surrogates_are_replaced(self):
        # JSON \u escapes can decode to unpaired surrogates
        raw = json.loads('{"id": "a\\ud800", "user": "\\ud800x", "text": "\\udc00 hi", "uid": "\\ud800"}')
        msg = sanitize_message(raw)
        assert msg.id == "a?"
        assert msg.user == "?x"
        assert msg.text == "? hi"
        assert msg.uid == "?"
        json.dumps(msg.model_dump(), ensure_ascii=False).encode("utf-8")

    def test_result_is_immutable(self):
        msg = sanitize_message({"text": "hi"})
        with pytest.raises(ValidationError):
            msg.text = "changed"


class TestHelpers:
    def test_generate_message_id_is_unique(self):
        ids = {generate_message_id(1) for _ in range(500)}
        assert len(ids) == 500

    def test_clean_display_name(self):
        assert clean_display_name(None) == "Anonymous"
        assert clean_display_name("") == "Anonymous"
        assert clean_display_name("  Bob  ") == "Bob"
        assert clean_display_name("abcdef", max_length=3) == "abc"
        assert clean_display_name("\udfff") == "?"

    def test_is_blank(self):
        assert is_blank(sanitize_message({"text": "   \n\t"}))
        assert is_blank(sanitize_message({}))
        assert not is_blank(sanitize_message({"text": " hi "}))
