"""Shared test fixtures for the mail_attachments test suite."""

from __future__ import annotations

from email import encoders
from email.mime.base import MIMEBase
from email.mime.message import MIMEMessage
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import pytest

# A binary blob covering every byte value, standing in for a PDF file.
SAMPLE_PDF = b"%PDF-1.4\n" + bytes(range(256)) * 8 + b"\n%%EOF\n"
SAMPLE_JPEG = b"\xff\xd8\xff\xe0" + bytes(range(255, -1, -1)) * 4 + b"\xff\xd9"


# ------------------------------------------------------------------
# Sample EML builders
# ------------------------------------------------------------------


def _attachment_part(filename: str | None, content_type: str, payload: bytes) -> MIMEBase:
    maintype, subtype = content_type.split("/", 1)
    part = MIMEBase(maintype, subtype)
    part.set_payload(payload)
    encoders.encode_base64(part)
    if filename is None:
        part.add_header("Content-Disposition", "attachment")
    else:
        part.add_header("Content-Disposition", "attachment", filename=filename)
    return part


def _build_plain_email(*, body: str = "Hello, World!", subject: str = "Test Subject") -> bytes:
    msg = MIMEText(body, "plain")
    msg["Subject"] = subject
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<test-001@example.com>"
    return msg.as_bytes()


def _build_multipart_email(
    *,
    body_text: str = "Plain body",
    body_html: str = "<p>HTML body</p>",
    attachments: list[tuple[str | None, str, bytes]] | None = None,
    subject: str = "Multipart Email",
) -> MIMEMultipart:
    """Build a multipart/mixed email with a text+HTML body and attachments."""
    msg = MIMEMultipart("mixed")
    msg["Subject"] = subject
    msg["From"] = "sender@example.com"
    msg["To"] = "recipient@example.com"
    msg["Message-ID"] = "<multi-001@example.com>"

    alt = MIMEMultipart("alternative")
    alt.attach(MIMEText(body_text, "plain"))
    alt.attach(MIMEText(body_html, "html"))
    msg.attach(alt)

    for filename, content_type, payload in attachments or []:
        msg.attach(_attachment_part(filename, content_type, payload))
    return msg


def _build_forwarded_email(
    *,
    outer: list[tuple[str | None, str, bytes]],
    inner: list[tuple[str | None, str, bytes]],
) -> bytes:
    """Build a message whose last attachment is an embedded message."""
    msg = _build_multipart_email(attachments=outer, subject="Fwd: Original")
    embedded = _build_multipart_email(attachments=inner, subject="Original")
    forwarded = MIMEMessage(embedded)
    forwarded.add_header("Content-Disposition", "attachment", filename="original.eml")
    msg.attach(forwarded)
    return msg.as_bytes()


def _raw(text: str) -> bytes:
    """Encode a hand-written message, normalising line endings to CRLF."""
    return text.replace("\r\n", "\n").replace("\n", "\r\n").encode("utf-8")


@pytest.fixture
def plain_eml_bytes() -> bytes:
    return _build_plain_email()


@pytest.fixture
def multipart_eml_bytes() -> bytes:
    return _build_multipart_email(
        attachments=[
            ("test_document.pdf", "application/pdf", SAMPLE_PDF),
            ("test_image.jpg", "image/jpeg", SAMPLE_JPEG),
        ],
    ).as_bytes()


@pytest.fixture
def forwarded_eml_bytes() -> bytes:
    return _build_forwarded_email(
        outer=[("cover.pdf", "application/pdf", SAMPLE_PDF)],
        inner=[("photo.jpg", "image/jpeg", SAMPLE_JPEG)],
    )
