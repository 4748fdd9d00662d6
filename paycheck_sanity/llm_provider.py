from __future__ import annotations

import json
import logging
from typing import Any
from urllib import error, request

from paycheck_sanity.errors import UpstreamCallError

logger = logging.getLogger(__name__)

GEMINI_ENDPOINT_TEMPLATE = (
    "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent?key={api_key}"
)


def _post_json(url: str, payload: dict[str, Any], headers: dict[str, str], timeout: float = 60.0) -> dict[str, Any]:
    body = json.dumps(payload).encode("utf-8")
    req = request.Request(url, data=body, headers=headers, method="POST")
    with request.urlopen(req, timeout=timeout) as response:
        response_body = response.read().decode("utf-8")
    return json.loads(response_body)


def _http_error_message(provider_name: str, exc: error.HTTPError) -> str:
    response_excerpt = ""
    try:
        response_body = exc.read().decode("utf-8", errors="replace").strip()
    except OSError:
        response_body = ""

    if response_body:
        logger.error("%s API response body: %s", provider_name, response_body[:500])
        try:
            parsed = json.loads(response_body)
            if isinstance(parsed, dict):
                error_payload = parsed.get("error")
                if isinstance(error_payload, dict):
                    message = error_payload.get("message")
                    if isinstance(message, str) and message.strip():
                        response_excerpt = message.strip()
        except json.JSONDecodeError:
            response_excerpt = response_body[:200]

    if response_excerpt:
        return f"{provider_name} request failed with HTTP {exc.code}: {response_excerpt}"

    return f"{provider_name} request failed with HTTP {exc.code}."


def generate_content_with_gemini(
    *,
    api_key: str,
    model: str,
    parts: list[dict[str, Any]],
    timeout: float = 60.0,
) -> dict[str, Any]:
    """Call Gemini `generateContent` and return the decoded response payload.

    Raises UpstreamCallError for a missing key, HTTP errors and transport failures.
    """
    if not api_key:
        raise UpstreamCallError("GEMINI_API_KEY not configured.")

    endpoint = GEMINI_ENDPOINT_TEMPLATE.format(model=model, api_key=api_key)
    payload = {"contents": [{"parts": parts}]}
    try:
        return _post_json(endpoint, payload, {"Content-Type": "application/json"}, timeout=timeout)
    except error.HTTPError as exc:
        raise UpstreamCallError(_http_error_message("Gemini", exc)) from exc
    except (error.URLError, OSError) as exc:
        raise UpstreamCallError(f"Gemini request failed before receiving a response: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise UpstreamCallError("Gemini returned a response body that is not JSON.") from exc
