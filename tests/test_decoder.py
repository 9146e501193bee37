"""Tests for mail_attachments.decoder."""

from __future__ import annotations

import base64
import binascii

import pytest

from tests.conftest import SAMPLE_PDF

from mail_attachments.decoder import (
    decode_base64,
    decode_body,
    decode_quoted_printable,
    decode_uuencode,
    normalize_encoding,
)


class TestNormalizeEncoding:
    def test_default_is_7bit(self):
        assert normalize_encoding(None) == "7bit"
        assert normalize_encoding("") == "7bit"
        assert normalize_encoding("   ") == "7bit"

    def test_case_and_whitespace(self):
        assert normalize_encoding("  BASE64 ") == "base64"
        assert normalize_encoding('"Quoted-Printable"') == "quoted-printable"


class TestDecodeBody:
    @pytest.mark.parametrize("encoding", [None, "7bit", "8bit", "binary", "x-custom"])
    def test_passthrough(self, encoding):
        raw = b"\x00\xffraw =41 bytes"
        result = decode_body(encoding, raw)
        assert result.data == raw
        assert result.ok

    def test_dispatch_is_case_insensitive(self):
        assert decode_body("Base64", b"QUJD").data == b"ABC"
        assert decode_body("QUOTED-PRINTABLE", b"=41").data == b"A"

    def test_garbage_never_raises(self):
        garbage = bytes(range(256)) * 3
        for encoding in ("base64", "quoted-printable", "x-uuencode"):
            result = decode_body(encoding, garbage)
            assert isinstance(result.data, bytes)


class TestDecodeBase64:
    def test_wrapped_lines_round_trip(self):
        encoded = base64.encodebytes(SAMPLE_PDF)
        assert b"\n" in encoded
        result = decode_base64(encoded.replace(b"\n", b"\r\n"))
        assert result.data == SAMPLE_PDF
        assert result.ok

    def test_padding(self):
        assert decode_base64(b"QQ==").data == b"A"
        assert decode_base64(b"QUI=").data == b"AB"
        assert decode_base64(b"QQ==").ok

    def test_missing_padding_decodes_tail(self):
        result = decode_base64(b"QUJDQUI")
        assert result.data == b"ABCAB"
        assert not result.ok

    def test_invalid_character_stops_decoding(self):
        result = decode_base64(b"QUJD!QUJD")
        assert result.data == b"ABC"
        assert not result.ok

    def test_data_after_padding_is_dropped(self):
        result = decode_base64(b"QQ==QUJD")
        assert result.data == b"A"
        assert not result.ok

    def test_lone_trailing_character_dropped(self):
        result = decode_base64(b"QUJDR")
        assert result.data == b"ABC"
        assert not result.ok

    def test_empty(self):
        result = decode_base64(b"")
        assert result.data == b""
        assert result.ok


    def test_large_body(self):
        payload = bytes(range(256)) * 16384
        result = decode_base64(base64.encodebytes(payload))
        assert result.data == payload
        assert result.ok


class TestDecodeQuotedPrintable:
    def test_escapes(self):
        assert decode_quoted_printable(b"caf=C3=A9").data == "café".encode("utf-8")

    def test_lowercase_hex(self):
        assert decode_quoted_printable(b"caf=c3=a9").data == "café".encode("utf-8")

    def test_soft_line_breaks(self):
        assert decode_quoted_printable(b"long=\r\nline=\nend").data == b"longlineend"

    def test_soft_break_with_trailing_whitespace(self):
        assert decode_quoted_printable(b"long=  \r\nline").data == b"longline"

    def test_trailing_whitespace_removed(self):
        assert decode_quoted_printable(b"abc   \r\ndef\t").data == b"abc\r\ndef"

    def test_invalid_escape_kept(self):
        assert decode_quoted_printable(b"a=ZZb").data == b"a=ZZb"

    def test_equals_at_end(self):
        assert decode_quoted_printable(b"abc=").data == b"abc"


class TestDecodeUuencode:
    def test_round_trip(self):
        line = binascii.b2a_uu(b"hello world")
        raw = b"begin 644 hello.txt\n" + line + b"`\nend\n"
        result = decode_uuencode(raw)
        assert result.data == b"hello world"
        assert result.ok

    def test_without_begin_line(self):
        line = binascii.b2a_uu(b"abc")
        assert decode_uuencode(line).data == b"abc"

    def test_dispatch_aliases(self):
        raw = b"begin 644 a\n" + binascii.b2a_uu(b"xyz") + b"end\n"
        for encoding in ("x-uuencode", "uuencode", "x-uue"):
            assert decode_body(encoding, raw).data == b"xyz"
