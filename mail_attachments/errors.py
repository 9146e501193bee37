"""Exceptions raised by the public extraction operations."""

from __future__ import annotations

from pathlib import Path


class MailAttachmentsError(Exception):
    """Base class for all errors raised by this package."""


class NoHeadersError(MailAttachmentsError, ValueError):
    """The input has no parseable header block, so it is not a message."""

    def __init__(self, message: str = "no header fields found in message") -> None:
        super().__init__(message)


class AttachmentWriteError(MailAttachmentsError, OSError):
    """Writing an attachment to disk failed.

    Files already written during the failing call have been removed by the
    time this is raised.  The underlying ``OSError`` is chained as
    ``__cause__``.
    """

    def __init__(
        self,
        message: str,
        *,
        directory: Path,
        filename: str | None = None,
    ) -> None:
        super().__init__(message)
        self.directory = directory
        self.filename = filename
