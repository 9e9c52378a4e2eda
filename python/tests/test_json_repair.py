# Tests for text-level JSON repair: extraction, normalization, balance repair
# Covers the malformations seen in real model output, plus idempotence and balance properties

import json
import pytest

from advisor_gateway.utils.json_repair import (
    CODE, OPEN_STRING, STRING,
    delimiter_counts,
    extract_array_field,
    extract_document,
    normalize_aggressive,
    normalize_mild,
    parse_document,
    repair_balance,
    split_segments,
    strip_code_fences,
)


def balanced(text):
    counts = delimiter_counts(text)
    return counts["{"] == counts["}"] and counts["["] == counts["]"]


class TestExtraction:
    """Locating the document inside prose and code fences"""

    def test_strip_code_fences(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '\n{"a": 1}\n'
        assert strip_code_fences('```\n{}\n```') == "\n{}\n"

    def test_extract_from_prose_and_fence(self):
        text = 'Sure! Here you go:\n```json\n{"a": 1, "b": {"c": 2}}\n```\nAnything else?'
        assert extract_document(text) == '{"a": 1, "b": {"c": 2}}'

    def test_extract_without_closer_runs_to_end(self):
        assert extract_document('prefix {"a": [1, 2   ') == '{"a": [1, 2'

    def test_extract_no_document(self):
        assert extract_document("I cannot help with that.") is None
        assert extract_document("") is None
        assert extract_document(None) is None

    def test_extract_array_field_closed(self):
        text = 'garbage {"matches": [{"a": 1}, {"b": "]"}], "other": {broken'
        assert extract_array_field(text, "matches") == '{"matches": [{"a": 1}, {"b": "]"}]}'

    def test_extract_array_field_unquoted_label(self):
        assert extract_array_field("matches: [1, 2] trailing", "matches") == '{"matches": [1, 2]}'

    def test_extract_array_field_truncated(self):
        doc = extract_array_field('{"matches": [{"a": 1}, {"b"', "matches")
        assert doc == '{"matches": [{"a": 1}, {"b"'
        assert json.loads(repair_balance(doc)) == {"matches": [{"a": 1}]}

    def test_extract_array_field_missing(self):
        assert extract_array_field('{"results": []}', "matches") is None
        # label must be a whole word
        assert extract_array_field('{"rematches": [1]}', "matches") is None


class TestSegments:
    """String-literal detection"""

    def test_split_segments(self):
        assert split_segments('{"a": "x\\"y"}') == [
            (CODE, "{"), (STRING, '"a"'), (CODE, ": "), (STRING, '"x\\"y"'), (CODE, "}"),
        ]

    def test_open_string(self):
        assert split_segments('{"a": "cut') == [
            (CODE, "{"), (STRING, '"a"'), (CODE, ": "), (OPEN_STRING, '"cut'),
        ]


class TestMildNormalization:
    """Low-risk rewrites outside string literals"""

    def test_trailing_separators(self):
        assert normalize_mild('{"a": 1,}') == '{"a": 1}'
        assert normalize_mild('{"a": [1, 2,]}') == '{"a": [1, 2]}'
        assert normalize_mild('{"a": [1, 2, ,]}') == '{"a": [1, 2]}'

    def test_double_colon(self):
        assert normalize_mild('{"a":: 1}') == '{"a": 1}'

    def test_bare_keys(self):
        assert normalize_mild('{a: 1, b_c: "x"}') == '{"a": 1, "b_c": "x"}'

    def test_stringified_primitives(self):
        text = '{"score": "85", "ok": "true", "v": "null", "rate": "-0.5"}'
        assert json.loads(normalize_mild(text)) == {"score": 85, "ok": True, "v": None, "rate": -0.5}

    def test_dates_stay_quoted(self):
        assert normalize_mild('{"dueDate": "2025-12-01"}') == '{"dueDate": "2025-12-01"}'

    def test_list_items_and_keys_stay_quoted(self):
        assert normalize_mild('{"85": ["90", "true"]}') == '{"85": ["90", "true"]}'

    def test_string_contents_untouched(self):
        text = '{"note": "a,} b: c,]", "k": "x::y"}'
        assert normalize_mild(text) == text

    def test_valid_document_unchanged(self):
        text = '{"matches": [{"universityId": "u1", "matchScore": 80, "strengths": ["a", "b"]}]}'
        assert normalize_mild(text) == text

    @pytest.mark.parametrize("text", [
        '{a: "1", b: [1, 2,],, c:: "null"}',
        '{"x": "007", y: "2024-01-01", "z": {"w": "false",}}',
        '{matches: [{universityId: "u1", matchScore: "85",}]',
    ])
    def test_idempotent(self, text):
        once = normalize_mild(text)
        assert normalize_mild(once) == once


class TestAggressiveNormalization:
    """Higher-risk rewrites used after the mild pass fails"""

    def test_single_quoted_document(self):
        assert json.loads(normalize_aggressive("{'a': 'b', 'n': '3'}")) == {"a": "b", "n": 3}

    def test_smart_quotes(self):
        assert json.loads(normalize_aggressive("{“a”: “b”}")) == {"a": "b"}

    def test_line_breaks_inside_strings(self):
        assert normalize_aggressive('{"a": "line1\nline2"}') == '{"a": "line1 line2"}'

    def test_bare_values(self):
        out = normalize_aggressive("{name: Harvard, ok: True, x: None, tags: [cs, math]}")
        assert json.loads(out) == {"name": "Harvard", "ok": True, "x": None, "tags": ["cs", "math"]}

    def test_adjacent_records(self):
        assert json.loads(normalize_aggressive('[{"a": 1} {"b": 2}]')) == [{"a": 1}, {"b": 2}]

    def test_double_and_leading_separators(self):
        assert json.loads(normalize_aggressive('{"a": [, 1,, 2], "b": 3}')) == {"a": [1, 2], "b": 3}


class TestBalanceRepair:
    """Closing truncated documents"""

    def test_balanced_input_unchanged(self):
        assert repair_balance('{"a": [1, 2]}') == '{"a": [1, 2]}'

    def test_closes_complete_tail(self):
        assert repair_balance('{"a": [1, 2') == '{"a": [1, 2]}'

    def test_drops_dangling_separator(self):
        assert repair_balance('{"a": [1, 2, ') == '{"a": [1, 2]}'

    def test_drops_key_without_value(self):
        assert repair_balance('{"a": 1, "b":') == '{"a": 1}'

    def test_drops_unterminated_string(self):
        assert repair_balance('{"a": 1, "b": "cut') == '{"a": 1}'
        assert repair_balance('{"a": "cut') == "{}"

    def test_stray_closer_dropped(self):
        assert repair_balance('{"a": 1}}') == '{"a": 1}'
        assert repair_balance(']{"a": 1}') == '{"a": 1}'

    def test_mismatched_closer_closes_inner_first(self):
        assert repair_balance('{"a": [1, 2}') == '{"a": [1, 2]}'

    def test_list_then_mapping_closers(self):
        text = '{"matches": [{"universityId": "u1", "matchScore": 80}'
        assert json.loads(repair_balance(text)) == {"matches": [{"universityId": "u1", "matchScore": 80}]}

    def test_incomplete_record_dropped_whole(self):
        assert repair_balance('{"matches": [{"a": 1}, {"b"') == '{"matches": [{"a": 1}]}'
        assert repair_balance('{"a": 1, "b": {"c"') == '{"a": 1}'
        assert repair_balance('{"a": {"c": "cut') == "{}"
        assert repair_balance("[[[{") == "[]"

    def test_delimiters_inside_strings_ignored(self):
        assert repair_balance('{"a": "}{]["') == '{"a": "}{]["}'

    @pytest.mark.parametrize("text", [
        '{"a": [1, {"b": [2, 3',
        '{"a": "x", "b": [{"c": "}',
        '}}]]{"a": [}',
        '[[[{',
        '{"a": [1, 2]}]]}',
        '{"k": "v\\"}", "l": [',
    ])
    def test_output_is_balanced(self, text):
        assert balanced(repair_balance(text))


class TestParse:

    def test_parse_success(self):
        assert parse_document('{"a": [1, "x", null]}') == ({"a": [1, "x", None]}, None)

    def test_parse_tolerates_control_characters(self):
        tree, reason = parse_document('{"a": "tab\there"}')
        assert reason is None and tree == {"a": "tab\there"}

    def test_parse_failure_reports_reason(self):
        tree, reason = parse_document('{"a": }')
        assert tree is None
        assert "line 1" in reason

    def test_oversized_integer_never_raises(self):
        tree, reason = parse_document('{"n": ' + "9" * 5000 + "}")
        # interpreters with an integer digit limit reject the literal
        assert (tree is None) == (reason is not None)
