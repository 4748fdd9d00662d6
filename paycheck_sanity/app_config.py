from __future__ import annotations

import os
from dataclasses import dataclass, field

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
DEFAULT_ERROR_LOG_PATH = "server_error.log"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"
DEFAULT_HTTP_TIMEOUT_SECONDS = 60.0


@dataclass(frozen=True)
class AnalyzerSettings:
    gemini_api_key: str
    gemini_model: str = DEFAULT_GEMINI_MODEL
    error_log_path: str = DEFAULT_ERROR_LOG_PATH
    request_timeout_seconds: float | None = None
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    cors_allowed_origins: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "gemini_api_key": "set" if self.gemini_api_key else "missing",
            "gemini_model": self.gemini_model,
            "error_log_path": self.error_log_path,
            "request_timeout_seconds": self.request_timeout_seconds,
            "http_timeout_seconds": self.http_timeout_seconds,
            "cors_allowed_origins": self.cors_allowed_origins,
        }


def _parse_positive_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    if parsed <= 0:
        return None
    return parsed


def _parse_origins(value: str) -> list[str]:
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def load_settings() -> AnalyzerSettings:
    return AnalyzerSettings(
        gemini_api_key=(os.getenv("GEMINI_API_KEY") or "").strip(),
        gemini_model=(os.getenv("PAYCHECK_GEMINI_MODEL") or DEFAULT_GEMINI_MODEL).strip(),
        error_log_path=(os.getenv("PAYCHECK_ERROR_LOG_PATH") or DEFAULT_ERROR_LOG_PATH).strip(),
        request_timeout_seconds=_parse_positive_float(os.getenv("PAYCHECK_REQUEST_TIMEOUT_SECONDS")),
        http_timeout_seconds=_parse_positive_float(os.getenv("PAYCHECK_GEMINI_HTTP_TIMEOUT_SECONDS"))
        or DEFAULT_HTTP_TIMEOUT_SECONDS,
        cors_allowed_origins=_parse_origins(
            os.getenv("PAYCHECK_CORS_ALLOWED_ORIGINS", DEFAULT_CORS_ORIGINS)
        ),
    )
