"""Tests for the plan JSON repair passes."""

import json

import pytest

from toolpilot.agent.repair import (
    JsonRepairPipeline,
    balance_brackets,
    canonicalize_tool_names,
    close_open_string,
    insert_missing_colons,
    looks_truncated,
    name_empty_keys,
    quote_bare_tokens,
    split_segments,
    strip_code_fences,
    strip_trailing_commas,
    tighten_delimiters,
)

ALIASES = {'listDirectory': 'list_directory'}

MESSY = (
    '{"goal" "x", "": [ {"tool": "listDirectory", "parameters": {path: .},}, '
    '{"id": "2", "description": "abc'
)


@pytest.fixture
def pipeline() -> JsonRepairPipeline:
    return JsonRepairPipeline(ALIASES)


# ---------------------------------------------------------------------------
# Segmentation
# ---------------------------------------------------------------------------


class TestSplitSegments:
    def test_alternates_strings_and_structure(self):
        segments = split_segments('{"a": "b"}')
        assert [s.text for s in segments] == ['{', '"a"', ': ', '"b"', '}']
        assert [s.is_string for s in segments] == [False, True, False, True, False]

    def test_escaped_quote_stays_inside_string(self):
        segments = split_segments(r'{"a": "say \"hi\""}')
        assert segments[3].text == r'"say \"hi\""'
        assert segments[3].closed

    def test_unclosed_string_is_marked(self):
        segments = split_segments('{"a": "tru')
        assert segments[-1].text == '"tru'
        assert not segments[-1].closed


# ---------------------------------------------------------------------------
# Single passes
# ---------------------------------------------------------------------------


class TestPasses:
    def test_strip_code_fences(self):
        text = '```json\n{"steps": []}\n```'
        assert json.loads(strip_code_fences(text)) == {"steps": []}

    def test_name_empty_keys(self):
        text = '{"": [{"tool": "x", "": {"a": 1}}]}'
        assert name_empty_keys(text) == '{"steps": [{"tool": "x", "parameters": {"a": 1}}]}'

    def test_name_empty_keys_leaves_empty_values(self):
        text = '{"a": "", "b": []}'
        assert name_empty_keys(text) == text

    def test_tighten_delimiters(self):
        assert tighten_delimiters('[ {"a": 1},  {"b": 2}]') == '[{"a": 1},{"b": 2}]'

    def test_tighten_delimiters_ignores_strings(self):
        text = '{"note": "a, {b} [ {c"}'
        assert tighten_delimiters(text) == text

    def test_insert_missing_colons(self):
        assert insert_missing_colons('{"goal" "x", "tool" "y"}') == '{"goal": "x", "tool": "y"}'

    def test_insert_missing_colons_leaves_arrays(self):
        text = '{"ids": ["a", "b"]}'
        assert insert_missing_colons(text) == text

    def test_canonicalize_only_tool_values(self):
        text = '{"tool": "listDirectory", "description": "listDirectory"}'
        assert canonicalize_tool_names(text, ALIASES) == \
            '{"tool": "list_directory", "description": "listDirectory"}'

    def test_close_open_string(self):
        assert close_open_string('{"a": "abc') == '{"a": "abc"'
        assert close_open_string('{"a": "abc"') == '{"a": "abc"'

    def test_close_open_string_drops_dangling_escape(self):
        assert close_open_string('{"a": "abc\\') == '{"a": "abc"'

    def test_balance_brackets_closes_innermost_first(self):
        assert balance_brackets('{"a": [{"b": 1') == '{"a": [{"b": 1}]}'

    def test_balance_brackets_ignores_brackets_in_strings(self):
        text = '{"a": "[{"}'
        assert balance_brackets(text) == text

    @pytest.mark.parametrize("text, truncated", [
        ('{"a": [1, 2]}', False),
        ('{"a": "[{"}', False),
        ('{"steps": [{"id": "1"}}', True),
        ('{"a": {"b": 1}', True),
        ('{"a": "cut', True),
    ])
    def test_looks_truncated(self, text, truncated):
        assert looks_truncated(text) is truncated

    def test_strip_trailing_commas(self):
        assert strip_trailing_commas('{"a": [1, 2, ], }') == '{"a": [1, 2 ] }'

    def test_strip_trailing_commas_ignores_strings(self):
        text = '{"a": "x, }"}'
        assert strip_trailing_commas(text) == text

    def test_quote_bare_tokens(self):
        text = '{goal: list files, count: 3, ok: true, gone: null}'
        assert json.loads(quote_bare_tokens(text)) == {
            "goal": "list files", "count": 3, "ok": True, "gone": None,
        }

    def test_quote_bare_tokens_keeps_numbers_and_literals(self):
        text = '{"a": -1.5e3, "b": [1, true, null]}'
        assert quote_bare_tokens(text) == text

    @pytest.mark.parametrize("repair_pass", [
        strip_code_fences,
        name_empty_keys,
        tighten_delimiters,
        insert_missing_colons,
        lambda text: canonicalize_tool_names(text, ALIASES),
        close_open_string,
        balance_brackets,
        strip_trailing_commas,
        quote_bare_tokens,
    ])
    def test_each_pass_is_idempotent(self, repair_pass):
        once = repair_pass(MESSY)
        assert repair_pass(once) == once


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class TestPipeline:
    def test_pass_order(self, pipeline: JsonRepairPipeline):
        assert [p.name for p in pipeline.passes] == [
            'strip_code_fences',
            'name_empty_keys',
            'tighten_delimiters',
            'insert_missing_colons',
            'canonicalize_tool_names',
            'close_open_string',
            'balance_brackets',
            'strip_trailing_commas',
            'quote_bare_tokens',
        ]

    def test_valid_json_is_left_alone(self, pipeline: JsonRepairPipeline):
        text = '{"goal":"g","steps":[{"id":"1","tool":"read_file","parameters":{"path":"a, {b}"}}]}'
        repaired, applied = pipeline.run(text)
        assert repaired == text
        assert applied == []

    def test_twice_is_byte_identical(self, pipeline: JsonRepairPipeline):
        text = '{"goal": "g",\n  "steps": [\n    {"id": "1", "tool": "read_file"},\n    {"id": "2"}\n  ]\n}'
        once = pipeline.repair(text)
        assert pipeline.repair(once) == once
        assert json.loads(once) == json.loads(text)

    def test_trailing_comma(self, pipeline: JsonRepairPipeline):
        parsed = json.loads(pipeline.repair('{"steps":[{"id":"1","tool":"read_file"},]}'))
        assert parsed == {"steps": [{"id": "1", "tool": "read_file"}]}

    def test_truncated_brace_and_quote(self, pipeline: JsonRepairPipeline):
        repaired, applied = pipeline.run('{"goal":"g","steps":[],"note":"abc')
        assert json.loads(repaired) == {"goal": "g", "steps": [], "note": "abc"}
        assert applied == ['close_open_string', 'balance_brackets']

    def test_messy_plan(self, pipeline: JsonRepairPipeline):
        assert json.loads(pipeline.repair(MESSY)) == {
            "goal": "x",
            "steps": [
                {"tool": "list_directory", "parameters": {"path": "."}},
                {"id": "2", "description": "abc"},
            ],
        }
