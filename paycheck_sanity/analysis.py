from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from paycheck_sanity.attachments import build_content_parts, prepare_attachment
from paycheck_sanity.error_log import ErrorLogEntry, ErrorLogSink
from paycheck_sanity.errors import UpstreamCallError
from paycheck_sanity.llm_json import decode_analysis_json, strip_markdown_fences
from paycheck_sanity.reply_text import extract_reply_text
from paycheck_sanity.schema_models import (
    AnalysisResult,
    AnalyzeRequest,
    DegradedAnalysisResponse,
    normalize_analysis_result,
)

logger = logging.getLogger(__name__)

ContentGenerator = Callable[[list[dict[str, Any]]], Any]


@dataclass(frozen=True)
class AnalysisOutcome:
    status_code: int
    payload: dict[str, Any]


async def _call_model(
    generate: ContentGenerator,
    parts: list[dict[str, Any]],
    timeout_seconds: float | None,
) -> Any:
    call = asyncio.to_thread(generate, parts)
    if timeout_seconds is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise UpstreamCallError(f"Gemini call timed out after {timeout_seconds:g} seconds.") from exc


async def _analyze(
    request: AnalyzeRequest,
    *,
    generate: ContentGenerator,
    timeout_seconds: float | None,
    now: datetime | None,
) -> AnalysisResult:
    attachment = prepare_attachment(request.image, request.mime_type)
    if attachment is not None:
        logger.info("Using MIME type: %s", attachment.mime_type)
    parts = build_content_parts(request.prompt, attachment)

    response = await _call_model(generate, parts, timeout_seconds)

    raw_text = extract_reply_text(response)
    logger.info("Gemini raw response length: %d", len(raw_text))
    logger.info("Gemini raw response preview: %s", raw_text[:200])

    decoded = decode_analysis_json(strip_markdown_fences(raw_text))
    result = normalize_analysis_result(decoded, now=now)
    logger.info("Sending validated result: %s", result.model_dump_json()[:200])
    return result


def _record_failure(error_log: ErrorLogSink, exc: Exception) -> None:
    try:
        error_log.append(ErrorLogEntry.from_exception(exc))
    except Exception:
        logger.exception("Could not append entry to the error log.")


async def run_analysis(
    request: AnalyzeRequest,
    *,
    generate: ContentGenerator,
    error_log: ErrorLogSink,
    timeout_seconds: float | None = None,
    now: datetime | None = None,
) -> AnalysisOutcome:
    """Run one paystub audit end to end.

    Every failure, from the model call to normalization, ends here as a
    degraded but well-formed payload with status code 500, after it has been
    appended to the error log.
    """
    logger.info("--- New analysis request ---")
    try:
        result = await _analyze(request, generate=generate, timeout_seconds=timeout_seconds, now=now)
    except Exception as exc:
        logger.exception("Error analyzing paystub: %s", exc)
        _record_failure(error_log, exc)
        degraded = DegradedAnalysisResponse(error=str(exc) or type(exc).__name__)
        return AnalysisOutcome(status_code=500, payload=degraded.model_dump())

    return AnalysisOutcome(status_code=200, payload=result.model_dump(mode="json"))
