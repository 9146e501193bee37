"""Persist extracted attachments to a directory.

Writes are all-or-nothing per call: each file is staged under a hidden
temporary name and renamed into place, and a failure removes every file
this call already wrote before :class:`AttachmentWriteError` is raised.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Iterable
from pathlib import Path

import structlog

from .config import ExtractionOptions, ParserLimits
from .errors import AttachmentWriteError
from .extractor import Attachment, extract_nested_attachments

logger = structlog.get_logger()

_OPEN_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_EXCL | getattr(os, "O_BINARY", 0)


def extract_attachments_to_disk(
    raw: bytes | str,
    options: ExtractionOptions | None = None,
    limits: ParserLimits | None = None,
) -> list[str]:
    """Extract attachments from *raw* and write them under ``options.directory``.

    Returns the written filenames (``prefix + name``, not full paths) in
    traversal order.  Attachments whose content type is not in
    ``options.mime_types`` are skipped when that set is non-empty.

    Raises
    ------
    NoHeadersError
        If *raw* has no parseable header block.
    AttachmentWriteError
        If the directory cannot be created or a file cannot be written.
        No file written by this call remains on disk.
    """
    options = options or ExtractionOptions()
    attachments = extract_nested_attachments(raw, limits)
    selected = [a for a in attachments if options.allows(a.content_type)]
    if len(selected) != len(attachments):
        logger.debug(
            "attachments_filtered",
            total=len(attachments),
            selected=len(selected),
            mime_types=sorted(options.mime_types),
        )
    return write_attachments(selected, options)


def write_attachments(
    attachments: Iterable[Attachment],
    options: ExtractionOptions,
) -> list[str]:
    """Write *attachments* to disk, rolling back on the first failure."""
    directory = options.directory
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("attachment_directory_failed", directory=str(directory), error=str(exc))
        raise AttachmentWriteError(
            f"Failed to create directory {directory}: {exc}",
            directory=directory,
        ) from exc

    written: list[Path] = []
    filenames: list[str] = []
    for attachment in attachments:
        filename = f"{options.prefix}{attachment.name}"
        target = directory / filename
        try:
            _write_atomic(target, attachment.content_bytes)
        except OSError as exc:
            logger.error(
                "attachment_write_failed",
                directory=str(directory),
                filename=filename,
                rolled_back=len(written),
                error=str(exc),
            )
            _remove_all(written)
            raise AttachmentWriteError(
                f"Failed to write {filename}: {exc}",
                directory=directory,
                filename=filename,
            ) from exc
        written.append(target)
        filenames.append(filename)

    logger.info("attachments_written", directory=str(directory), count=len(filenames))
    return filenames


def _write_atomic(target: Path, data: bytes) -> None:
    """Write *data* to *target* so that only a complete file is ever visible."""
    staging = target.parent / f".{uuid.uuid4().hex}.part"
    fd = os.open(staging, _OPEN_FLAGS, 0o666)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(staging, target)
    except BaseException:
        staging.unlink(missing_ok=True)
        raise


def _remove_all(paths: list[Path]) -> None:
    for path in reversed(paths):
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("attachment_rollback_failed", path=str(path), error=str(exc))
