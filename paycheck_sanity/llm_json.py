"""Turning raw AI reply text into a decoded payload.

Gemini tends to wrap JSON in markdown fences even when asked not to, and
occasionally truncates or refuses. Fences are stripped first; anything that
still fails to decode is replaced by a fixed fallback document so the request
can continue to the normalizer.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from paycheck_sanity.schema_models import (
    UNCLEAR_STATUS,
    CheckPerformed,
    Coverage,
    EstimatedDiscrepancy,
    PayrollFlag,
    SectionAnalysis,
    TolerancePolicy,
)

logger = logging.getLogger(__name__)

_LANGUAGE_FENCE_RE = re.compile(r"```json\s*", re.IGNORECASE)
_BARE_FENCE_RE = re.compile(r"```\s*")


def _strip_once(text: str) -> str:
    return _BARE_FENCE_RE.sub("", _LANGUAGE_FENCE_RE.sub("", text)).strip()


def strip_markdown_fences(text: str) -> str:
    """Remove markdown code fences and surrounding whitespace.

    Repeated until nothing changes, so backticks left adjacent by a removal
    cannot form a new fence on a second call.
    """
    current = text
    while True:
        stripped = _strip_once(current)
        if stripped == current:
            return stripped
        current = stripped


def build_fallback_document() -> dict[str, Any]:
    return {
        "status": UNCLEAR_STATUS,
        "confidence": "Low",
        "coverage": Coverage(fields_found=0, fields_expected=1, checks_run=0, checks_possible=1).model_dump(),
        "estimated_discrepancy": EstimatedDiscrepancy(
            value=0.0, currency="USD", note="Error", basis="Parsing failure"
        ).model_dump(),
        "tolerance_policy": TolerancePolicy(
            gross_tolerance_usd=1, net_tolerance_usd=1, note="Fallback defaults"
        ).model_dump(),
        "summary": "AI could not parse the output. Manual review required.",
        "extraction": {},
        "checks_performed": [CheckPerformed(name="System Error", result=UNCLEAR_STATUS).model_dump()],
        "earnings_analysis": SectionAnalysis(detail="Could not verify earnings due to parse error.").model_dump(),
        "withholding_analysis": SectionAnalysis(detail="Could not verify taxes due to parse error.").model_dump(),
        "net_analysis": SectionAnalysis(detail="Could not verify net pay due to parse error.").model_dump(),
        "flags": [
            PayrollFlag(
                title="Analysis Error",
                severity="High",
                evidence="System Error",
                why_it_matters="AI response was invalid or missing.",
                what_to_ask_payroll="N/A",
            ).model_dump()
        ],
        "action_plan": ["Retry analysis", "Check document quality", "Contact support"],
        "payroll_questions": [
            "Why did the audit fail?",
            "Is my paystub format standard?",
            "Can I get a cleaner copy?",
        ],
        "watch_next_time": ["Verify document clarity", "Check file format", "Retry upload"],
        "limits": ["AI Error"],
    }


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-standard JSON constant {name!r}")


def decode_analysis_json(text: str) -> Any:
    """Decode cleaned reply text, substituting the fallback document on failure."""
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (ValueError, TypeError, RecursionError) as exc:
        logger.error("JSON parse error: %s", exc)
        logger.error("Failed to parse: %s", (text or "")[:500])
        return build_fallback_document()
