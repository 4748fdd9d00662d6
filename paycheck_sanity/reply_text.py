from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from paycheck_sanity.errors import ExtractionError

logger = logging.getLogger(__name__)

SHAPE_DUMP_LIMIT = 500


class TextBearingReply(Protocol):
    name: str

    def read_text(self, response: Any) -> str | None:
        ...


def _lookup(container: Any, key: str) -> Any:
    if isinstance(container, Mapping):
        return container.get(key)
    return getattr(container, key, None)


def _first(sequence: Any) -> Any:
    if isinstance(sequence, (list, tuple)) and sequence:
        return sequence[0]
    return None


@dataclass(frozen=True)
class TextPropertyReply:
    """Newer SDK responses expose the reply as a plain `text` property."""

    name: str = "text_property"

    def read_text(self, response: Any) -> str | None:
        text = _lookup(response, "text")
        return text if isinstance(text, str) else None


@dataclass(frozen=True)
class TextAccessorReply:
    """Older SDK responses expose `text()` as a method."""

    name: str = "text_accessor"

    def read_text(self, response: Any) -> str | None:
        accessor = _lookup(response, "text")
        if not callable(accessor):
            return None
        text = accessor()
        return text if isinstance(text, str) else None


@dataclass(frozen=True)
class CandidatesReply:
    """Raw REST payloads: candidates[0].content.parts[*].text."""

    name: str = "candidates"

    def read_text(self, response: Any) -> str | None:
        candidate = _first(_lookup(response, "candidates"))
        if candidate is None:
            return None
        content = _lookup(candidate, "content")
        parts = _lookup(content, "parts") if content is not None else None
        if not isinstance(parts, (list, tuple)):
            return None
        for part in parts:
            text = _lookup(part, "text")
            if isinstance(text, str):
                return text
        return None


REPLY_ADAPTERS: tuple[TextBearingReply, ...] = (
    TextPropertyReply(),
    TextAccessorReply(),
    CandidatesReply(),
)


def _describe_shape(response: Any) -> tuple[str, list[str]]:
    if isinstance(response, Mapping):
        keys = [str(key) for key in response.keys()]
    else:
        keys = sorted(name for name in dir(response) if not name.startswith("_"))
    try:
        dump = json.dumps(response, indent=2, default=repr)
    except (TypeError, ValueError):
        dump = repr(response)
    return dump[:SHAPE_DUMP_LIMIT], keys


def extract_reply_text(
    response: Any,
    adapters: tuple[TextBearingReply, ...] = REPLY_ADAPTERS,
) -> str:
    """Return the reply text from whichever known response shape matches first."""
    failures: list[str] = []
    for adapter in adapters:
        try:
            text = adapter.read_text(response)
        except (AttributeError, TypeError, ValueError, KeyError, IndexError) as exc:
            # SDK objects raise from `.text` when the candidate was blocked.
            failures.append(f"{adapter.name}: {exc}")
            continue
        if text is not None:
            logger.debug("Reply text extracted via %s adapter.", adapter.name)
            return text

    shape_dump, keys = _describe_shape(response)
    logger.error("Response object keys: %s", keys)
    logger.error("Response structure: %s", shape_dump)
    detail = "; ".join(failures) if failures else "no adapter matched the response shape"
    raise ExtractionError(
        f"Failed to extract text from AI response: {detail}",
        shape_dump=shape_dump,
        keys=keys,
    )
