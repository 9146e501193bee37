"""Attachment extraction from a parsed MIME tree.

Walks the tree depth-first in pre-order and emits one :class:`Attachment`
per qualifying leaf.  Embedded messages are flattened: their attachments
are emitted in place of the message part itself.
"""

from __future__ import annotations

import itertools
import os
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

from .config import ParserLimits
from .mime import MimePart, parse_message

logger = structlog.get_logger()

MAX_FILENAME_BYTES = 255
PLACEHOLDER_NAME = "attachment-{ordinal}"

_ILLEGAL_FILENAME_CHARS_RE = re.compile(r'[<>:"|?*\x00-\x1f\x7f]')


@dataclass(frozen=True)
class Attachment:
    """A single decoded attachment."""

    name: str
    content_type: str
    content_bytes: bytes = field(repr=False)


def extract_nested_attachments(
    raw: bytes | str,
    limits: ParserLimits | None = None,
) -> list[Attachment]:
    """Extract every attachment from *raw*, including nested ones.

    Raises
    ------
    NoHeadersError
        If *raw* has no parseable header block.  Every other malformation
        degrades the affected part instead of failing the call.
    """
    root = parse_message(_as_bytes(raw), limits)
    attachments = list(iter_attachments(root))
    logger.debug("attachments_extracted", count=len(attachments))
    return attachments


def iter_attachments(root: MimePart) -> Iterator[Attachment]:
    """Yield the attachments of an already-built tree in traversal order."""
    yield from _walk_message(root, itertools.count(1))


def sanitize_filename(name: str) -> str:
    """Make *name* safe to use as a single filename.

    Keeps only the last path component, removes characters illegal on
    common filesystems, strips leading dots and surrounding whitespace, and
    truncates to 255 UTF-8 bytes while keeping the extension.  May return an
    empty string.
    """
    name = name.replace("\\", "/").rsplit("/", 1)[-1]
    name = _ILLEGAL_FILENAME_CHARS_RE.sub("", name)
    name = name.strip().lstrip(". ").rstrip(". ")
    return _truncate(name)


def resolve_name(part: MimePart, ordinal: int) -> str:
    """Pick the display name for *part*, falling back to a placeholder."""
    candidates = (
        part.disposition_params.get("filename*"),
        part.disposition_params.get("filename"),
        part.content_params.get("name*"),
        part.content_params.get("name"),
    )
    for candidate in candidates:
        if candidate:
            name = sanitize_filename(candidate)
            if name:
                return name
    return PLACEHOLDER_NAME.format(ordinal=ordinal)


def is_attachment(part: MimePart, *, primary_body: bool = False) -> bool:
    """Classify a leaf part as an attachment candidate."""
    if part.disposition == "attachment":
        return True
    has_filename = "filename" in part.disposition_params or "filename*" in part.disposition_params
    if part.disposition == "inline" and has_filename:
        return True
    has_name = "name" in part.content_params or "name*" in part.content_params
    return has_name and not primary_body


# ------------------------------------------------------------------
# Traversal
# ------------------------------------------------------------------


def _walk_message(message: MimePart, ordinal: Iterator[int]) -> Iterator[Attachment]:
    primary = _primary_body_parts(message)
    for part in _own_parts(message):
        if part.is_message:
            for embedded in part.children or ():
                yield from _walk_message(embedded, ordinal)
        elif part.is_container:
            continue
        elif is_attachment(part, primary_body=any(part is body for body in primary)):
            position = next(ordinal)
            yield Attachment(
                name=resolve_name(part, position),
                content_type=part.content_type,
                content_bytes=part.body,
            )


def _own_parts(part: MimePart) -> Iterator[MimePart]:
    """Pre-order walk that stops at embedded message boundaries."""
    yield part
    if part.is_message:
        return
    for child in part.children or ():
        yield from _own_parts(child)


def _primary_body_parts(message: MimePart) -> list[MimePart]:
    """The first text/plain and first text/html body leaf of one message."""
    found: dict[str, MimePart] = {}
    for part in _own_parts(message):
        if part.is_container or part.disposition == "attachment":
            continue
        if part.content_type in ("text/plain", "text/html"):
            found.setdefault(part.content_type, part)
    return list(found.values())


def _truncate(name: str) -> str:
    encoded = name.encode("utf-8")
    if len(encoded) <= MAX_FILENAME_BYTES:
        return name
    stem, ext = os.path.splitext(name)
    ext_bytes = ext.encode("utf-8")
    if len(ext_bytes) >= MAX_FILENAME_BYTES // 2:
        stem, ext_bytes = name, b""
    budget = MAX_FILENAME_BYTES - len(ext_bytes)
    head = stem.encode("utf-8")[:budget].decode("utf-8", errors="ignore")
    return head + ext_bytes.decode("utf-8")


def _as_bytes(raw: bytes | str) -> bytes:
    if isinstance(raw, str):
        return raw.encode("utf-8", errors="surrogateescape")
    return bytes(raw)
