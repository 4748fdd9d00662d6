import os
import unittest
from unittest.mock import patch

from paycheck_sanity.app_config import (
    DEFAULT_ERROR_LOG_PATH,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    load_settings,
)


class TestLoadSettings(unittest.TestCase):
    def test_defaults_without_environment(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()

        self.assertEqual(settings.gemini_api_key, "")
        self.assertEqual(settings.gemini_model, DEFAULT_GEMINI_MODEL)
        self.assertEqual(settings.error_log_path, DEFAULT_ERROR_LOG_PATH)
        self.assertIsNone(settings.request_timeout_seconds)
        self.assertEqual(settings.http_timeout_seconds, DEFAULT_HTTP_TIMEOUT_SECONDS)
        self.assertIn("http://localhost:3000", settings.cors_allowed_origins)

    def test_reads_environment_overrides(self):
        environment = {
            "GEMINI_API_KEY": " secret ",
            "PAYCHECK_GEMINI_MODEL": "gemini-1.5-pro",
            "PAYCHECK_ERROR_LOG_PATH": "/var/log/paycheck/errors.log",
            "PAYCHECK_REQUEST_TIMEOUT_SECONDS": "45",
            "PAYCHECK_GEMINI_HTTP_TIMEOUT_SECONDS": "30",
            "PAYCHECK_CORS_ALLOWED_ORIGINS": "https://paycheck.example.com, ,http://localhost:5173",
        }
        with patch.dict(os.environ, environment, clear=True):
            settings = load_settings()

        self.assertEqual(settings.gemini_api_key, "secret")
        self.assertEqual(settings.gemini_model, "gemini-1.5-pro")
        self.assertEqual(settings.error_log_path, "/var/log/paycheck/errors.log")
        self.assertEqual(settings.request_timeout_seconds, 45.0)
        self.assertEqual(settings.http_timeout_seconds, 30.0)
        self.assertEqual(
            settings.cors_allowed_origins,
            ["https://paycheck.example.com", "http://localhost:5173"],
        )

    def test_invalid_timeouts_are_ignored(self):
        environment = {
            "PAYCHECK_REQUEST_TIMEOUT_SECONDS": "soon",
            "PAYCHECK_GEMINI_HTTP_TIMEOUT_SECONDS": "-5",
        }
        with patch.dict(os.environ, environment, clear=True):
            settings = load_settings()

        self.assertIsNone(settings.request_timeout_seconds)
        self.assertEqual(settings.http_timeout_seconds, DEFAULT_HTTP_TIMEOUT_SECONDS)

    def test_to_dict_masks_api_key(self):
        with patch.dict(os.environ, {"GEMINI_API_KEY": "secret"}, clear=True):
            payload = load_settings().to_dict()

        self.assertEqual(payload["gemini_api_key"], "set")


if __name__ == "__main__":
    unittest.main()
