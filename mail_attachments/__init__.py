"""Extract attachments, including nested ones, from raw RFC 5322 messages.

Public API re-exported here for convenience::

    from mail_attachments import extract_nested_attachments, extract_attachments_to_disk
"""

from .config import ExtractionOptions, LoggingConfig, ParserLimits
from .errors import AttachmentWriteError, MailAttachmentsError, NoHeadersError
from .extractor import Attachment, extract_nested_attachments, iter_attachments, sanitize_filename
from .logging import setup_logging
from .mime import MimePart, parse_message
from .writer import extract_attachments_to_disk, write_attachments

__all__ = [
    "Attachment",
    "AttachmentWriteError",
    "ExtractionOptions",
    "LoggingConfig",
    "MailAttachmentsError",
    "MimePart",
    "NoHeadersError",
    "ParserLimits",
    "extract_attachments_to_disk",
    "extract_nested_attachments",
    "iter_attachments",
    "parse_message",
    "sanitize_filename",
    "setup_logging",
    "write_attachments",
]
