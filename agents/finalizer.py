"""
TradingDesk - Decision Finalizer

Turns the CEO's raw output into a TradingDecision. Never raises: anything
that cannot be understood becomes a WAIT decision carrying the reason.
"""

from __future__ import annotations

import json

from pydantic import ValidationError

from agents.locales import translations
from tradingdesk.logging import get_pipeline_logger
from tradingdesk.models import TradingDecision

logger = get_pipeline_logger()

RAW_EXCERPT_CHARS = 500


def extract_json_object(text: str) -> str | None:
    """
    Return the first balanced {...} region of `text`.

    Braces inside JSON strings are ignored, so prose, code fences and
    reasoning text containing braces do not confuse the scan.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start : i + 1]
        # Unbalanced from here; try the next opening brace
        start = text.find("{", start + 1)
    return None


def parse_decision(raw: str | None) -> TradingDecision:
    """Parse CEO output, falling back to WAIT on any failure."""
    raw = raw or ""
    candidate = extract_json_object(raw)

    try:
        if candidate is None:
            raise ValueError("no JSON object found")
        payload = json.loads(candidate)
        if not isinstance(payload, dict):
            raise ValueError("decision is not a JSON object")
        decision = TradingDecision.model_validate(payload)
    except (ValueError, TypeError, OverflowError, RecursionError, ValidationError) as e:
        # json.JSONDecodeError is a ValueError; deep nesting raises RecursionError
        logger.warning("decision_parse_failed", error=str(e), raw_chars=len(raw))
        excerpt = raw[:RAW_EXCERPT_CHARS] or "<empty>"
        return TradingDecision.fallback(
            f"Failed to parse CEO decision format ({e}). Raw output: {excerpt}"
        )

    logger.info("decision_parsed", action=decision.action.value, confidence=decision.confidence)
    return decision


def format_summary(decision: TradingDecision, language: str = "en") -> str:
    """On-screen CEO summary in the display language."""
    return translations(language)["summary"].format(
        action=decision.action.value,
        confidence=decision.confidence,
        reasoning=decision.reasoning,
    )
