"""RFC 5322 header block parsing.

Splits the leading header block from the body, unfolds continuation
lines, and parses structured ``Content-Type`` / ``Content-Disposition``
values including RFC 2231 extended parameters.  Nothing in here raises on
malformed input; the caller decides whether an empty header list is fatal.
"""

from __future__ import annotations

import binascii
import email.errors
import email.header
import email.utils
import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

# Field names are printable US-ASCII except colon.  Whitespace before the
# colon is tolerated since real mailers emit it.
_HEADER_LINE_RE = re.compile(rb"^([\x21-\x39\x3b-\x7e]+)[ \t]*:(.*)$", re.DOTALL)
_LINE_SPLIT_RE = re.compile(rb"\r\n|\n")
_RFC2231_KEY_RE = re.compile(r"^(?P<name>\w+)\*(?:(?P<index>\d{1,3})\*?)?$", re.ASCII)
_ENVELOPE_LINE_RE = re.compile(rb"From [^\s:]+(?:[ \t][^\n]*)?(?:\n|\Z)")


@dataclass(frozen=True)
class Header:
    """A single header field.  ``value`` is unfolded but not decoded."""

    name: str
    value: str

    def matches(self, name: str) -> bool:
        return self.name.lower() == name.lower()


class HeaderList:
    """Ordered header fields with case-insensitive lookup."""

    def __init__(self, headers: Iterable[Header] = ()) -> None:
        self._headers = list(headers)

    def __iter__(self) -> Iterator[Header]:
        return iter(self._headers)

    def __len__(self) -> int:
        return len(self._headers)

    def __bool__(self) -> bool:
        return bool(self._headers)

    def __repr__(self) -> str:
        return f"HeaderList({self._headers!r})"

    def get(self, name: str, default: str | None = None) -> str | None:
        """Return the value of the first header called *name*."""
        for header in self._headers:
            if header.matches(name):
                return header.value
        return default

    def get_all(self, name: str) -> list[str]:
        return [h.value for h in self._headers if h.matches(name)]


# ------------------------------------------------------------------
# Header block
# ------------------------------------------------------------------


def strip_envelope_line(data: bytes) -> bytes:
    """Drop a leading mbox ``From <addr> <date>`` envelope line, if present.

    A ``From :`` header field is not an envelope line and is kept.
    """
    match = _ENVELOPE_LINE_RE.match(data)
    return data[match.end() :] if match else data


def split_header_block(data: bytes) -> tuple[bytes, bytes]:
    """Split *data* at the first blank line into ``(headers, body)``.

    The separator may be CRLF CRLF or LF LF, whichever comes first.  When
    there is no blank line the whole input is the header block.
    """
    # A blank first line means an empty header block.
    if data.startswith(b"\r\n"):
        return b"", data[2:]
    if data.startswith(b"\n"):
        return b"", data[1:]

    candidates = []
    crlf = data.find(b"\r\n\r\n")
    if crlf != -1:
        candidates.append((crlf, crlf + 4))
    lf = data.find(b"\n\n")
    if lf != -1:
        candidates.append((lf, lf + 2))
    mixed = data.find(b"\n\r\n")
    if mixed != -1:
        candidates.append((mixed, mixed + 3))

    if not candidates:
        return data, b""
    end, body_start = min(candidates)
    return data[:end], data[body_start:]


def parse_headers(block: bytes) -> list[Header]:
    """Parse a raw header block into ordered :class:`Header` fields.

    Continuation lines (leading space or tab) are appended to the previous
    field with only the line break removed.  Lines that are neither a field
    nor a continuation are skipped.
    """
    headers: list[tuple[str, list[str]]] = []
    for line in _LINE_SPLIT_RE.split(block):
        if not line:
            continue
        if line[:1] in (b" ", b"\t"):
            if headers:
                headers[-1][1].append(_to_text(line))
            continue
        match = _HEADER_LINE_RE.match(line)
        if match is None:
            continue
        name = match.group(1).decode("ascii")
        headers.append((name, [_to_text(match.group(2))]))

    return [Header(name=name, value="".join(chunks).strip()) for name, chunks in headers]


def _to_text(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


# ------------------------------------------------------------------
# RFC 2047 encoded words
# ------------------------------------------------------------------


def decode_encoded_words(text: str) -> str:
    """Decode RFC 2047 encoded words in *text*, best-effort.

    Any failure returns *text* unchanged.
    """
    if "=?" not in text:
        return text
    try:
        fragments = email.header.decode_header(text)
    except (email.errors.HeaderParseError, binascii.Error, ValueError):
        return text

    parts: list[str] = []
    for fragment, charset in fragments:
        if isinstance(fragment, str):
            parts.append(fragment)
        elif charset is None:
            parts.append(fragment.decode("raw-unicode-escape", errors="replace"))
        else:
            parts.append(decode_bytes(fragment, charset))
    return "".join(parts)


def decode_bytes(data: bytes, charset: str | None) -> str:
    """Decode *data* in *charset*, falling back to UTF-8 with replacement.

    Unknown charsets fall back, as do codecs that refuse to decode
    leniently (``undefined``, ``idna``).
    """
    if charset:
        try:
            return data.decode(charset.strip().strip('"'), errors="replace")
        except (LookupError, UnicodeError):
            pass
    return data.decode("utf-8", errors="replace")


# ------------------------------------------------------------------
# Structured values: Content-Type / Content-Disposition
# ------------------------------------------------------------------


def parse_parameterized(value: str | None) -> tuple[str, dict[str, str]]:
    """Parse ``main; key=value; ...`` into ``(main, params)``.

    ``main`` is lowercased.  Parameter keys are lowercased.  RFC 2231
    extended and continued parameters (``name*``, ``name*0*``, ...) are
    collapsed, charset-decoded and stored under ``name*``; plain values are
    RFC 2047-decoded and stored under ``name``.
    """
    if not value:
        return "", {}

    segments = _split_unquoted(value, ";")
    main = segments[0].strip().lower()

    params: dict[str, str] = {}
    extended: list[tuple[str, str]] = []

    for segment in segments[1:]:
        key, sep, raw = segment.partition("=")
        key = key.strip().lower()
        if not sep or not key:
            continue
        param_value = _unquote(raw.strip())

        ext = _RFC2231_KEY_RE.match(key)
        if ext is None:
            params.setdefault(key, decode_encoded_words(param_value))
            continue
        # Unnumbered ``name*`` is piece 0 so every piece sorts by an int.
        if ext.group("index") is None:
            key = f"{ext.group('name')}*0*"
        extended.append((key, f'"{email.utils.quote(param_value)}"'))

    # decode_params orders continuations and percent-decodes extended pieces.
    for name, value in email.utils.decode_params([(main, ""), *extended])[1:]:
        if isinstance(value, tuple):
            params.setdefault(f"{name}*", _rfc2231_text(value))
        else:
            params.setdefault(name, decode_encoded_words(email.utils.unquote(value)))
    return main, params


def _rfc2231_text(value: tuple[str | None, str | None, str]) -> str:
    """Charset-decode a collapsed ``(charset, language, text)`` value.

    Like ``email.utils.collapse_rfc2231_value`` but never raises on a
    hostile charset.
    """
    charset, _language, text = value
    raw = email.utils.unquote(text).encode("raw-unicode-escape")
    return decode_bytes(raw, charset)


def _split_unquoted(value: str, separator: str) -> list[str]:
    """Split on *separator* outside double-quoted strings."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    escaped = False
    for char in value:
        if escaped:
            current.append(char)
            escaped = False
        elif char == "\\" and in_quotes:
            current.append(char)
            escaped = True
        elif char == '"':
            current.append(char)
            in_quotes = not in_quotes
        elif char == separator and not in_quotes:
            parts.append("".join(current))
            current = []
        else:
            current.append(char)
    parts.append("".join(current))
    return parts


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return re.sub(r"\\(.)", r"\1", value[1:-1])
    if value.startswith('"'):
        # Unterminated quote: keep what is there.
        return re.sub(r"\\(.)", r"\1", value[1:])
    return value
