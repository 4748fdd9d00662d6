import asyncio
import time
import unittest
from datetime import datetime, timezone

from paycheck_sanity.analysis import run_analysis
from paycheck_sanity.error_log import InMemoryErrorLog
from paycheck_sanity.errors import UpstreamCallError
from paycheck_sanity.llm_json import build_fallback_document
from paycheck_sanity.schema_models import AnalyzeRequest

FIXED_NOW = datetime(2026, 3, 1, 8, 0, 0, tzinfo=timezone.utc)


class _BrokenErrorLog:
    def append(self, entry):
        raise OSError("disk full")


class TestRunAnalysis(unittest.TestCase):
    def setUp(self):
        self.error_log = InMemoryErrorLog()
        self.captured_parts = []

    def _run(self, request, generate, **kwargs):
        kwargs.setdefault("error_log", self.error_log)
        return asyncio.run(run_analysis(request, generate=generate, now=FIXED_NOW, **kwargs))

    def _reply_with(self, text):
        def _generate(parts):
            self.captured_parts.append(parts)
            return {"text": text}

        return _generate

    def test_fenced_partial_reply_is_normalized(self):
        outcome = self._run(
            AnalyzeRequest(prompt="audit this"),
            self._reply_with('```json\n{"status":"OK"}\n```'),
        )

        self.assertEqual(outcome.status_code, 200)
        self.assertEqual(outcome.payload["status"], "OK")
        self.assertEqual(outcome.payload["confidence"], "Low")
        self.assertEqual(
            outcome.payload["coverage"],
            {"fields_found": 0, "fields_expected": 10, "checks_run": 0, "checks_possible": 5},
        )
        self.assertEqual(outcome.payload["flags"], [])
        self.assertEqual(outcome.payload["generated_at"], FIXED_NOW.isoformat())
        self.assertEqual(self.captured_parts, [[{"text": "audit this"}]])
        self.assertEqual(self.error_log.entries, [])

    def test_attachment_is_classified_and_sent_after_prompt(self):
        self._run(
            AnalyzeRequest(prompt="audit this", image="data:image/png;base64,JVBERi0xLjQ=", mimeType="image/png"),
            self._reply_with("{}"),
        )

        self.assertEqual(
            self.captured_parts[0][1],
            {"inline_data": {"mime_type": "application/pdf", "data": "JVBERi0xLjQ="}},
        )

    def test_non_json_reply_returns_fallback_document(self):
        outcome = self._run(AnalyzeRequest(prompt="audit this"), self._reply_with("I cannot process this."))

        payload = dict(outcome.payload)
        self.assertEqual(outcome.status_code, 200)
        self.assertTrue(payload.pop("record_id").startswith("PSC-"))
        self.assertEqual(payload.pop("generated_at"), FIXED_NOW.isoformat())
        self.assertEqual(payload, build_fallback_document())
        self.assertEqual(self.error_log.entries, [])

    def test_upstream_failure_returns_degraded_response_and_logs(self):
        def _generate(_parts):
            raise UpstreamCallError("Gemini request failed with HTTP 503.")

        outcome = self._run(AnalyzeRequest(prompt="audit this"), _generate)

        self.assertEqual(outcome.status_code, 500)
        self.assertEqual(
            outcome.payload,
            {
                "status": "Unclear",
                "summary": "Unable to complete analysis due to a server error.",
                "payroll_questions": ["Please try again later."],
                "error": "Gemini request failed with HTTP 503.",
            },
        )
        self.assertEqual(len(self.error_log.entries), 1)
        self.assertEqual(self.error_log.entries[0].message, "Gemini request failed with HTTP 503.")
        self.assertIn("UpstreamCallError", self.error_log.entries[0].stack_trace)

    def test_unextractable_reply_goes_through_failure_boundary(self):
        outcome = self._run(AnalyzeRequest(prompt="audit this"), lambda _parts: {"promptFeedback": {}})

        self.assertEqual(outcome.status_code, 500)
        self.assertIn("Failed to extract text", outcome.payload["error"])
        self.assertEqual(len(self.error_log.entries), 1)

    def test_unexpected_exception_without_message_still_reports_error(self):
        def _generate(_parts):
            raise KeyError()

        outcome = self._run(AnalyzeRequest(prompt="audit this"), _generate)

        self.assertEqual(outcome.status_code, 500)
        self.assertEqual(outcome.payload["error"], "KeyError")

    def test_error_log_failure_does_not_replace_degraded_response(self):
        def _generate(_parts):
            raise UpstreamCallError("quota exceeded")

        outcome = self._run(AnalyzeRequest(prompt="audit this"), _generate, error_log=_BrokenErrorLog())

        self.assertEqual(outcome.status_code, 500)
        self.assertEqual(outcome.payload["error"], "quota exceeded")

    def test_timeout_is_routed_through_failure_boundary(self):
        def _generate(_parts):
            time.sleep(0.5)
            return {"text": "{}"}

        outcome = self._run(AnalyzeRequest(prompt="audit this"), _generate, timeout_seconds=0.05)

        self.assertEqual(outcome.status_code, 500)
        self.assertIn("timed out", outcome.payload["error"])
        self.assertEqual(len(self.error_log.entries), 1)


if __name__ == "__main__":
    unittest.main()
