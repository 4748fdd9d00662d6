from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

RECORD_ID_PREFIX = "PSC"
UNCLEAR_STATUS = "Unclear"


class Coverage(BaseModel):
    fields_found: int = 0
    fields_expected: int = 10
    checks_run: int = 0
    checks_possible: int = 5


class EstimatedDiscrepancy(BaseModel):
    value: float = 0.0
    currency: str = "USD"
    basis: str = "N/A"
    note: str = "N/A"


class TolerancePolicy(BaseModel):
    gross_tolerance_usd: float = 1.0
    net_tolerance_usd: float = 1.0
    note: str = "Standard rounding"


class SectionAnalysis(BaseModel):
    status: str = UNCLEAR_STATUS
    detail: str = "N/A"


class CheckPerformed(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str
    result: str


class PayrollFlag(BaseModel):
    title: str
    severity: str
    evidence: str
    why_it_matters: str
    what_to_ask_payroll: str


class AnalysisResult(BaseModel):
    """Total paystub audit report returned to the caller.

    Nested sections are kept as plain mappings and lists: the normalizer only
    checks the top-level kind of each field and never coerces inner values.
    """

    record_id: str
    generated_at: str
    status: str
    confidence: str
    coverage: dict[str, Any]
    estimated_discrepancy: dict[str, Any]
    tolerance_policy: dict[str, Any]
    summary: str
    extraction: dict[str, Any]
    checks_performed: list[Any]
    earnings_analysis: dict[str, Any]
    withholding_analysis: dict[str, Any]
    net_analysis: dict[str, Any]
    flags: list[Any]
    action_plan: list[Any]
    payroll_questions: list[Any]
    watch_next_time: list[Any]
    limits: list[Any]


class PartialAnalysisResult(BaseModel):
    """Untrusted AI output: every field optional, unknown keys tolerated."""

    model_config = ConfigDict(extra="allow")

    record_id: Any = None
    generated_at: Any = None
    status: Any = None
    confidence: Any = None
    coverage: Any = None
    estimated_discrepancy: Any = None
    tolerance_policy: Any = None
    summary: Any = None
    extraction: Any = None
    checks_performed: Any = None
    earnings_analysis: Any = None
    withholding_analysis: Any = None
    net_analysis: Any = None
    flags: Any = None
    action_plan: Any = None
    payroll_questions: Any = None
    watch_next_time: Any = None
    limits: Any = None


class DegradedAnalysisResponse(BaseModel):
    status: str = UNCLEAR_STATUS
    summary: str = "Unable to complete analysis due to a server error."
    payroll_questions: list[str] = Field(default_factory=lambda: ["Please try again later."])
    error: str


class AnalyzeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    image: str | None = None
    mime_type: str | None = Field(default=None, alias="mimeType")


@dataclass(frozen=True)
class FieldDefault:
    kind: type
    default: Callable[[], Any]


FIELD_DEFAULTS: dict[str, FieldDefault] = {
    "status": FieldDefault(str, lambda: UNCLEAR_STATUS),
    "confidence": FieldDefault(str, lambda: "Low"),
    "coverage": FieldDefault(dict, lambda: Coverage().model_dump()),
    "estimated_discrepancy": FieldDefault(dict, lambda: EstimatedDiscrepancy().model_dump()),
    "tolerance_policy": FieldDefault(dict, lambda: TolerancePolicy().model_dump()),
    "summary": FieldDefault(str, lambda: "No summary provided."),
    "extraction": FieldDefault(dict, dict),
    "checks_performed": FieldDefault(list, list),
    "earnings_analysis": FieldDefault(dict, lambda: SectionAnalysis().model_dump()),
    "withholding_analysis": FieldDefault(dict, lambda: SectionAnalysis().model_dump()),
    "net_analysis": FieldDefault(dict, lambda: SectionAnalysis().model_dump()),
    "flags": FieldDefault(list, list),
    "action_plan": FieldDefault(list, lambda: ["Review findings", "Check limits", "Verify data"]),
    "payroll_questions": FieldDefault(
        list, lambda: ["Is this accurate?", "Please explain calculations", "Any updates?"]
    ),
    "watch_next_time": FieldDefault(list, lambda: ["Check next paystub", "Monitor hours", "Verify rates"]),
    "limits": FieldDefault(list, list),
}


def _has_kind(value: Any, kind: type) -> bool:
    if kind is str:
        return isinstance(value, str) and value != ""
    return isinstance(value, kind)


def new_record_id(now: datetime | None = None) -> str:
    millis = int(now.timestamp() * 1000) if now is not None else int(time.time() * 1000)
    return f"{RECORD_ID_PREFIX}-{millis}"


def normalize_analysis_result(payload: Any, *, now: datetime | None = None) -> AnalysisResult:
    """Turn any decoded AI payload into a total AnalysisResult.

    Values of the expected kind are kept as-is, everything else falls back to
    the default from FIELD_DEFAULTS. `generated_at` is always the server time.
    """
    generated_at = now or datetime.now(timezone.utc)
    if isinstance(payload, Mapping):
        partial = PartialAnalysisResult.model_validate(
            {key: value for key, value in payload.items() if isinstance(key, str)}
        )
    else:
        partial = PartialAnalysisResult()

    values: dict[str, Any] = {
        "record_id": partial.record_id if _has_kind(partial.record_id, str) else new_record_id(generated_at),
        "generated_at": generated_at.isoformat(),
    }
    for field_name, field_default in FIELD_DEFAULTS.items():
        value = getattr(partial, field_name)
        values[field_name] = value if _has_kind(value, field_default.kind) else field_default.default()

    return AnalysisResult.model_validate(values)


def analysis_result_json_schema() -> dict[str, Any]:
    return AnalysisResult.model_json_schema()
