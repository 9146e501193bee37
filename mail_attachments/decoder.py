"""Content-Transfer-Encoding decoding.

Every decoder here is total: malformed input yields whatever could be
recovered plus ``ok=False``, never an exception.
"""

from __future__ import annotations

import base64
import binascii
import re
from dataclasses import dataclass

import structlog

logger = structlog.get_logger()

_BASE64_PREFIX_RE = re.compile(rb"[A-Za-z0-9+/]*")
_WHITESPACE_RE = re.compile(rb"[ \t\r\n\f\v]+")
_QP_TRAILING_WS_RE = re.compile(rb"[ \t]+(?=\r?\n|\Z)")

IDENTITY_ENCODINGS = frozenset({"7bit", "8bit", "binary"})


@dataclass(frozen=True)
class DecodeResult:
    """Decoded bytes plus whether decoding consumed the input cleanly."""

    data: bytes
    ok: bool = True


def normalize_encoding(encoding: str | None) -> str:
    """Lowercase and strip a Content-Transfer-Encoding value; default ``7bit``."""
    if not encoding:
        return "7bit"
    return encoding.strip().strip('"').lower() or "7bit"


def decode_body(encoding: str | None, raw: bytes) -> DecodeResult:
    """Decode *raw* according to the transfer *encoding*.

    Unknown encodings pass through unchanged.
    """
    name = normalize_encoding(encoding)
    if name == "base64":
        result = decode_base64(raw)
    elif name == "quoted-printable":
        result = decode_quoted_printable(raw)
    elif name in ("x-uuencode", "uuencode", "x-uue"):
        result = decode_uuencode(raw)
    else:
        return DecodeResult(raw)

    if not result.ok:
        logger.debug(
            "transfer_decode_degraded",
            encoding=name,
            raw_size=len(raw),
            decoded_size=len(result.data),
        )
    return result


def decode_base64(raw: bytes) -> DecodeResult:
    """Decode base64, ignoring whitespace.

    Decoding stops at the first padding or invalid character.  A trailing
    group of 2-3 characters is decoded as if it were padded; a single
    trailing character is dropped.
    """
    compact = _WHITESPACE_RE.sub(b"", raw)

    end = _BASE64_PREFIX_RE.match(compact).end()
    valid = compact[:end]
    rest = compact[end:]

    ok = _is_clean_padding(rest, len(valid))

    whole = len(valid) - len(valid) % 4
    data = base64.b64decode(valid[:whole])

    tail = valid[whole:]
    if len(tail) in (2, 3):
        data += base64.b64decode(tail + b"=" * (4 - len(tail)))
    elif tail:
        ok = False
    return DecodeResult(data, ok)


def _is_clean_padding(rest: bytes, consumed: int) -> bool:
    if rest.rstrip(b"="):
        return False
    return (consumed + len(rest)) % 4 == 0


def decode_quoted_printable(raw: bytes) -> DecodeResult:
    """Decode quoted-printable: ``=XX`` escapes and soft line breaks.

    Escapes that are not valid hex pairs are kept literally.
    """
    # a2b_qp keeps whitespace before a soft break, so strip it first.
    return DecodeResult(binascii.a2b_qp(_QP_TRAILING_WS_RE.sub(b"", raw)))


def decode_uuencode(raw: bytes) -> DecodeResult:
    """Decode a uuencoded body between its ``begin`` and ``end`` lines."""
    lines = raw.splitlines()
    start = 0
    for index, line in enumerate(lines):
        if line.startswith(b"begin "):
            start = index + 1
            break

    data = bytearray()
    ok = True
    for line in lines[start:]:
        stripped = line.strip()
        if stripped == b"end":
            break
        if not stripped or stripped == b"`":
            continue
        try:
            data.extend(binascii.a2b_uu(line))
        except binascii.Error:
            # Some encoders pad lines; trim to the length the count byte declares.
            size = (((line[0] - 32) & 63) * 4 + 5) // 3
            try:
                data.extend(binascii.a2b_uu(line[:size]))
            except binascii.Error:
                ok = False
                break
    return DecodeResult(bytes(data), ok)
