from __future__ import annotations


class PaycheckAnalysisError(Exception):
    """Base class for failures that escalate to the request failure boundary."""


class UpstreamCallError(PaycheckAnalysisError):
    """The Gemini call itself failed (network, auth, quota, missing key)."""


class ExtractionError(PaycheckAnalysisError):
    """The AI reply did not expose any text in a known shape."""

    def __init__(self, message: str, *, shape_dump: str = "", keys: list[str] | None = None):
        super().__init__(message)
        self.shape_dump = shape_dump
        self.keys = keys or []
