"""Recursive MIME structure builder.

Turns a raw message into a tree of :class:`MimePart`.  A part is either a
leaf holding fully decoded bytes or a container owning an ordered list of
children: ``multipart/*`` parts split on their boundary, and
``message/rfc822`` parts wrapping the embedded message they carry.

Malformed structure never fails the parse.  Missing boundaries degrade to
opaque leaves, unterminated multiparts keep their complete segments, and
the :class:`ParserLimits` budget caps depth, part count and decoded size.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

import structlog

from .config import ParserLimits
from .decoder import decode_body, normalize_encoding
from .errors import NoHeadersError
from .headers import (
    HeaderList,
    parse_headers,
    parse_parameterized,
    split_header_block,
    strip_envelope_line,
)

logger = structlog.get_logger()

DEFAULT_CONTENT_TYPE = "text/plain"
DIGEST_DEFAULT_CONTENT_TYPE = "message/rfc822"
MESSAGE_CONTENT_TYPES = frozenset({"message/rfc822", "message/global"})
MAX_BOUNDARY_LENGTH = 200


@dataclass
class MimePart:
    """A node of the MIME tree.

    ``children is None`` marks a leaf whose ``body`` is decoded content.
    Containers keep ``body`` empty.
    """

    headers: HeaderList
    content_type: str
    transfer_encoding: str
    charset: str | None = None
    disposition: str = ""
    content_params: dict[str, str] = field(default_factory=dict)
    disposition_params: dict[str, str] = field(default_factory=dict)
    boundary: str | None = None
    body: bytes = b""
    children: list[MimePart] | None = None
    decoded_cleanly: bool = True

    @property
    def is_container(self) -> bool:
        return self.children is not None

    @property
    def maintype(self) -> str:
        return self.content_type.partition("/")[0]

    @property
    def is_multipart(self) -> bool:
        return self.is_container and self.maintype == "multipart"

    @property
    def is_message(self) -> bool:
        """True for an embedded message whose content parsed as a message."""
        return self.is_container and self.content_type in MESSAGE_CONTENT_TYPES

    def walk(self) -> Iterator[MimePart]:
        """Yield this part and every descendant, depth-first pre-order."""
        yield self
        for child in self.children or ():
            yield from child.walk()


class _ParseBudget:
    """Per-call accounting against :class:`ParserLimits`."""

    def __init__(self, limits: ParserLimits) -> None:
        self.limits = limits
        self.parts = 0
        self.decoded_bytes = 0

    def take_part(self) -> bool:
        if self.parts >= self.limits.max_parts:
            return False
        self.parts += 1
        return True

    def charge(self, data: bytes) -> bytes:
        remaining = max(self.limits.max_decoded_bytes - self.decoded_bytes, 0)
        if len(data) > remaining:
            logger.warning(
                "decoded_size_limit_reached",
                limit=self.limits.max_decoded_bytes,
                dropped=len(data) - remaining,
            )
            data = data[:remaining]
        self.decoded_bytes += len(data)
        return data


# ------------------------------------------------------------------
# Entry points
# ------------------------------------------------------------------


def parse_message(raw: bytes, limits: ParserLimits | None = None) -> MimePart:
    """Parse a raw RFC 5322 message into its MIME tree.

    Raises
    ------
    NoHeadersError
        If the leading block holds no valid header field.
    """
    block, body = split_header_block(strip_envelope_line(raw))
    headers = parse_headers(block)
    if not headers:
        raise NoHeadersError()

    budget = _ParseBudget(limits or ParserLimits())
    budget.take_part()
    return build_part(HeaderList(headers), body, budget=budget)


def build_part(
    headers: HeaderList,
    body: bytes,
    *,
    budget: _ParseBudget,
    depth: int = 0,
    default_type: str = DEFAULT_CONTENT_TYPE,
) -> MimePart:
    """Build the part described by *headers* over raw *body*, recursively."""
    main, content_params = parse_parameterized(headers.get("Content-Type"))
    content_type = main if _is_media_type(main) else default_type
    disposition, disposition_params = parse_parameterized(headers.get("Content-Disposition"))

    part = MimePart(
        headers=headers,
        content_type=content_type,
        transfer_encoding=normalize_encoding(headers.get("Content-Transfer-Encoding")),
        charset=content_params.get("charset"),
        disposition=disposition,
        content_params=content_params,
        disposition_params=disposition_params,
    )

    if part.maintype == "multipart":
        boundary = content_params.get("boundary", "")
        if not _is_valid_boundary(boundary):
            logger.warning("multipart_boundary_invalid", content_type=content_type)
        elif depth >= budget.limits.max_depth:
            logger.warning("mime_depth_limit_reached", depth=depth)
        else:
            _fill_multipart(part, boundary, body, budget=budget, depth=depth)
            return part

    _fill_leaf(part, body, budget=budget, depth=depth)
    return part


def split_multipart(body: bytes, boundary: str) -> tuple[list[bytes], bool]:
    """Split a multipart *body* on *boundary* delimiter lines.

    Returns the complete segments between delimiters and whether the close
    delimiter was seen.  The preamble, the epilogue and any unterminated
    trailing segment are dropped.  The line break preceding a delimiter
    belongs to the delimiter, not the segment.
    """
    marker = boundary.encode("utf-8", errors="surrogateescape")
    pattern = re.compile(rb"^--" + re.escape(marker) + rb"(--)?[ \t]*\r?$", re.MULTILINE)

    segments: list[bytes] = []
    start: int | None = None
    for match in pattern.finditer(body):
        if start is not None:
            end = match.start()
            if body[end - 2 : end] == b"\r\n":
                end -= 2
            elif body[end - 1 : end] == b"\n":
                end -= 1
            segments.append(body[start:end] if end > start else b"")
        if match.group(1):
            return segments, True
        start = match.end()
        if body[start : start + 1] == b"\n":
            start += 1
    return segments, False


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------


def _fill_multipart(
    part: MimePart,
    boundary: str,
    body: bytes,
    *,
    budget: _ParseBudget,
    depth: int,
) -> None:
    if part.transfer_encoding in ("base64", "quoted-printable"):
        body = decode_body(part.transfer_encoding, body).data

    segments, terminated = split_multipart(body, boundary)
    if not terminated:
        logger.warning(
            "multipart_unterminated",
            content_type=part.content_type,
            segments=len(segments),
        )

    child_default = (
        DIGEST_DEFAULT_CONTENT_TYPE
        if part.content_type == "multipart/digest"
        else DEFAULT_CONTENT_TYPE
    )
    part.boundary = boundary
    part.children = []
    for segment in segments:
        if not budget.take_part():
            logger.warning("mime_part_limit_reached", limit=budget.limits.max_parts)
            break
        headers, child_body = _split_segment(segment)
        part.children.append(
            build_part(
                headers,
                child_body,
                budget=budget,
                depth=depth + 1,
                default_type=child_default,
            )
        )


def _fill_leaf(part: MimePart, body: bytes, *, budget: _ParseBudget, depth: int) -> None:
    result = decode_body(part.transfer_encoding, body)
    part.decoded_cleanly = result.ok

    if part.content_type in MESSAGE_CONTENT_TYPES:
        embedded = _parse_embedded(result.data, budget=budget, depth=depth)
        if embedded is not None:
            part.children = [embedded]
            return

    part.body = budget.charge(result.data)


def _parse_embedded(data: bytes, *, budget: _ParseBudget, depth: int) -> MimePart | None:
    """Parse the content of a ``message/rfc822`` part, or None if it is not one."""
    if depth >= budget.limits.max_depth:
        logger.warning("mime_depth_limit_reached", depth=depth)
        return None
    block, body = split_header_block(strip_envelope_line(data))
    headers = parse_headers(block)
    if not headers:
        return None
    if not budget.take_part():
        logger.warning("mime_part_limit_reached", limit=budget.limits.max_parts)
        return None
    return build_part(HeaderList(headers), body, budget=budget, depth=depth + 1)


def _split_segment(segment: bytes) -> tuple[HeaderList, bytes]:
    """Split a body part into headers and body.

    A segment with no valid header line is all body.
    """
    block, body = split_header_block(segment)
    headers = parse_headers(block)
    if not headers and block:
        return HeaderList(), segment
    return HeaderList(headers), body


def _is_media_type(value: str) -> bool:
    maintype, sep, subtype = value.partition("/")
    return bool(sep and maintype.strip() and subtype.strip())


def _is_valid_boundary(boundary: str) -> bool:
    if not boundary:
        return False
    if len(boundary) > MAX_BOUNDARY_LENGTH:
        return False
    return "\r" not in boundary and "\n" not in boundary
