"""Entry point for the command line.

Usage::

    python -m mail_attachments list message.eml
    python -m mail_attachments extract message.eml --directory out --prefix 42- \\
        --mime-type application/pdf
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from .config import ExtractionOptions, LoggingConfig
from .errors import AttachmentWriteError, NoHeadersError
from .extractor import extract_nested_attachments
from .logging import setup_logging
from .writer import extract_attachments_to_disk

EXIT_OK = 0
EXIT_IO_ERROR = 1
EXIT_NO_HEADERS = 3


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mail_attachments",
        description="Extract attachments from a raw email message",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    list_cmd = commands.add_parser("list", help="List attachments without writing them")
    list_cmd.add_argument("message", help="Path to the raw message, or - for stdin")

    extract_cmd = commands.add_parser("extract", help="Write attachments to a directory")
    extract_cmd.add_argument("message", help="Path to the raw message, or - for stdin")
    extract_cmd.add_argument("--directory", default=".", help="Target directory (default: .)")
    extract_cmd.add_argument("--prefix", default="", help="Prefix prepended to every filename")
    extract_cmd.add_argument(
        "--mime-type",
        action="append",
        default=[],
        dest="mime_types",
        help="Only write attachments of this content type (repeatable)",
    )
    return parser


def _read_message(source: str) -> bytes:
    if source == "-":
        return sys.stdin.buffer.read()
    return Path(source).read_bytes()


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    options = None
    if args.command == "extract":
        try:
            options = ExtractionOptions(
                directory=args.directory,
                prefix=args.prefix,
                mime_types=args.mime_types,
            )
        except ValidationError as exc:
            parser.error(f"invalid options: {exc.errors()[0]['msg']}")

    log_config = LoggingConfig()
    setup_logging(json=log_config.log_json, level=log_config.log_level)

    try:
        raw = _read_message(args.message)
    except OSError as exc:
        print(f"error: cannot read {args.message}: {exc}", file=sys.stderr)
        return EXIT_IO_ERROR

    try:
        if args.command == "list":
            for attachment in extract_nested_attachments(raw):
                print(f"{attachment.name}\t{attachment.content_type}\t{len(attachment.content_bytes)}")
        else:
            for filename in extract_attachments_to_disk(raw, options):
                print(filename)
    except NoHeadersError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_NO_HEADERS
    except AttachmentWriteError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_IO_ERROR
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
