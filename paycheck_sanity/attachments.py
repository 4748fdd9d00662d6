from __future__ import annotations

from dataclasses import dataclass
from typing import Any

PDF_MIME_TYPE = "application/pdf"
DEFAULT_ATTACHMENT_MIME_TYPE = "image/jpeg"

# base64 of "%PDF"
PDF_BASE64_SIGNATURE = "JVBERi"

DATA_URI_MIME_PREFIXES: list[tuple[str, str]] = [
    ("data:image/png", "image/png"),
    ("data:image/jpeg", "image/jpeg"),
    ("data:image/jpg", "image/jpeg"),
]


@dataclass(frozen=True)
class Attachment:
    mime_type: str
    data: str


def extract_base64_payload(payload: str) -> str:
    """Return the encoded body of a data URI, or the payload itself when it is already raw."""
    _, separator, body = payload.partition(",")
    if separator and body:
        return body
    return payload


def classify_attachment_mime(payload: str, declared_mime: str | None = None) -> str:
    """Guess the media type of an uploaded attachment from its encoded prefix.

    A PDF signature wins over whatever the caller declared, since browsers
    regularly label PDF uploads as images. Never raises.
    """
    if payload.startswith(PDF_BASE64_SIGNATURE) or extract_base64_payload(payload).startswith(
        PDF_BASE64_SIGNATURE
    ):
        return PDF_MIME_TYPE

    header = payload[:32].lower()
    for prefix, mime in DATA_URI_MIME_PREFIXES:
        if header.startswith(prefix):
            return mime

    declared = (declared_mime or "").strip()
    return declared or DEFAULT_ATTACHMENT_MIME_TYPE


def prepare_attachment(payload: str | None, declared_mime: str | None = None) -> Attachment | None:
    if not payload:
        return None
    return Attachment(
        mime_type=classify_attachment_mime(payload, declared_mime),
        data=extract_base64_payload(payload),
    )


def build_content_parts(prompt: str, attachment: Attachment | None = None) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = [{"text": prompt}]
    if attachment is not None:
        parts.append({"inline_data": {"mime_type": attachment.mime_type, "data": attachment.data}})
    return parts
