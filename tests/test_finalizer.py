"""Tests for CEO output parsing."""

import pytest

from agents.finalizer import extract_json_object, format_summary, parse_decision
from tradingdesk.models import TradeAction


class TestExtractJsonObject:
    def test_plain_object(self):
        assert extract_json_object('{"a": 1}') == '{"a": 1}'

    def test_surrounding_prose(self):
        assert extract_json_object('Here you go: {"a": {"b": 2}} thanks') == '{"a": {"b": 2}}'

    def test_braces_inside_strings(self):
        text = '{"reasoning": "range {low} to {high}", "x": 1}'
        assert extract_json_object(text) == text

    def test_unbalanced_prefix_skipped(self):
        assert extract_json_object('{ oops {"a": 1}') == '{"a": 1}'

    def test_none_without_object(self):
        assert extract_json_object("no json here") is None


class TestParseDecision:
    """Structured decision or WAIT fallback, never an exception."""

    def test_fenced_json(self):
        raw = (
            "```json\n"
            '{"action": "LONG", "confidence": 72, "entryPrice": "64000-64200", '
            '"stopLoss": "63100", "takeProfit": "66500", "reasoning": "Trend up."}\n'
            "```"
        )
        d = parse_decision(raw)
        assert d.action is TradeAction.LONG
        assert d.confidence == 72
        assert d.entry_price == "64000-64200"
        assert d.stop_loss == "63100"
        assert d.take_profit == "66500"
        assert d.reasoning == "Trend up."

    def test_no_json_falls_back_to_wait(self):
        d = parse_decision("I cannot decide.")
        assert d.action is TradeAction.WAIT
        assert d.confidence == 0
        assert d.entry_price == d.stop_loss == d.take_profit == "N/A"
        assert "I cannot decide." in d.reasoning

    def test_invalid_json_falls_back(self):
        d = parse_decision('{"action": "LONG", confidence: }')
        assert d.action is TradeAction.WAIT
        assert "Failed to parse" in d.reasoning

    def test_schema_mismatch_falls_back(self):
        d = parse_decision('{"action": "BUY", "confidence": 50}')
        assert d.action is TradeAction.WAIT

    @pytest.mark.parametrize("confidence", ["null", "[70]", "{\"v\": 70}", "1e999", "-1e999", "NaN", "\"abc\""])
    def test_unusable_confidence_falls_back(self, confidence):
        raw = (
            '{"action": "LONG", "confidence": ' + confidence + ', "entryPrice": "1", '
            '"stopLoss": "0.9", "takeProfit": "1.2", "reasoning": "r"}'
        )
        d = parse_decision(raw)
        assert d.action is TradeAction.WAIT
        assert d.confidence == 0
        assert "Failed to parse" in d.reasoning

    def test_deeply_nested_payload_falls_back(self):
        raw = '{"action": "LONG", "confidence": ' + "[" * 100_000 + "]" * 100_000 + "}"
        assert parse_decision(raw).action is TradeAction.WAIT

    def test_empty_output(self):
        assert parse_decision("").action is TradeAction.WAIT
        assert parse_decision(None).action is TradeAction.WAIT

    def test_raw_excerpt_is_bounded(self):
        d = parse_decision("x" * 5000)
        assert len(d.reasoning) < 1000

    def test_structured_output_round_trip(self):
        raw = '{"action":"SHORT","confidence":55,"entryPrice":"3300","stopLoss":"3400","takeProfit":"3100","reasoning":"Weak."}'
        assert parse_decision(raw).action is TradeAction.SHORT


class TestFormatSummary:
    def test_english(self):
        d = parse_decision(
            '{"action": "LONG", "confidence": 72, "entryPrice": "1", "stopLoss": "0.9", '
            '"takeProfit": "1.2", "reasoning": "Trend up."}'
        )
        assert format_summary(d, "en") == "DECISION: LONG\nCONFIDENCE: 72%\nREASON: Trend up."

    @pytest.mark.parametrize("label", ["决策: WAIT", "置信度: 0%", "理由:"])
    def test_chinese(self, label):
        d = parse_decision("nothing")
        assert label in format_summary(d, "zh")
