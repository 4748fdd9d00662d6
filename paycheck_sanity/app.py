from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from paycheck_sanity.analysis import run_analysis
from paycheck_sanity.app_config import load_settings
from paycheck_sanity.error_log import FileErrorLog
from paycheck_sanity.llm_provider import generate_content_with_gemini
from paycheck_sanity.schema_models import AnalyzeRequest

logger = logging.getLogger(__name__)

SETTINGS = load_settings()
ERROR_LOG = FileErrorLog(Path(SETTINGS.error_log_path))
CORS_ALLOWED_ORIGINS = SETTINGS.cors_allowed_origins

logger.info("Analyzer settings: %s", SETTINGS.to_dict())

app = FastAPI(title="Paycheck Sanity Checker API")


@app.middleware("http")
async def api_prefix_alias(request, call_next):
    """Accept both `/path` and `/api/path` for frontend compatibility."""
    if request.scope.get("path", "").startswith("/api/"):
        request.scope["path"] = request.scope["path"][4:]
    return await call_next(request)


app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _generate_with_gemini(parts: list[dict[str, Any]]) -> dict[str, Any]:
    logger.info("Calling Gemini (%s)...", SETTINGS.gemini_model)
    return generate_content_with_gemini(
        api_key=SETTINGS.gemini_api_key,
        model=SETTINGS.gemini_model,
        parts=parts,
        timeout=SETTINGS.http_timeout_seconds,
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


@app.post("/analyze")
async def analyze_paystub(request: AnalyzeRequest):
    outcome = await run_analysis(
        request,
        generate=_generate_with_gemini,
        error_log=ERROR_LOG,
        timeout_seconds=SETTINGS.request_timeout_seconds,
    )
    return JSONResponse(status_code=outcome.status_code, content=outcome.payload)
