from __future__ import annotations

import csv
import io
import logging
import os
import shutil
import tempfile
from typing import Iterable

from .comments import NormalizedComment
from .conversation import Conversation
from .utils import log_event

EXPORT_HEADERS = ["comment-id", "comment_text", "agrees", "disagrees", "passes", "author-id"]

VOTE_COLUMNS = ("agrees", "disagrees", "passes")

UNFILTERED_SUFFIX = ".unfiltered"

logger = logging.getLogger("sensemaking.csv_export")


class CsvExporter:
    def __init__(self, conversation: Conversation) -> None:
        self.conversation = conversation

    def export_to_string(self) -> str:
        buffer = io.StringIO()
        _write_comments(buffer, self.conversation.comments())
        return buffer.getvalue()

    def export_to_csv(self, file_path: str | None = None) -> str:
        if file_path is None:
            handle, file_path = tempfile.mkstemp(prefix="sensemaking-export-", suffix=".csv")
            os.close(handle)
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        comments = self.conversation.comments()
        with open(file_path, "w", encoding="utf-8", newline="") as handle:
            _write_comments(handle, comments)
        log_event(
            logger,
            logging.INFO,
            "comments_exported",
            resource=self.conversation.ref,
            path=file_path,
            count=len(comments),
        )
        return file_path


def _write_comments(handle, comments: Iterable[NormalizedComment]) -> None:
    writer = csv.writer(handle)
    writer.writerow(EXPORT_HEADERS)
    for comment in comments:
        writer.writerow(_comment_row(comment))


def _comment_row(comment: NormalizedComment) -> list[object]:
    passes = max(
        comment.cached_votes_total - comment.cached_votes_up - comment.cached_votes_down, 0
    )
    return [
        comment.id,
        comment.body,
        comment.cached_votes_up,
        comment.cached_votes_down,
        passes,
        "" if comment.user_id is None else comment.user_id,
    ]


def filter_zero_vote_comments_from_csv(file_path: str) -> int | None:
    """Drop rows whose agrees + disagrees + passes is zero, keeping every column.

    The file is rewritten in place only when a row is removed; the original
    content is then kept next to it with an ``.unfiltered`` suffix. Returns
    the number of remaining rows, or ``None`` when the file does not exist.
    """
    if not os.path.exists(file_path):
        log_event(logger, logging.DEBUG, "csv_filter_skipped", path=file_path, reason="missing")
        return None

    with open(file_path, "r", encoding="utf-8", newline="") as handle:
        reader = csv.DictReader(handle)
        fieldnames = list(reader.fieldnames or [])
        rows = list(reader)

    kept = [row for row in rows if _vote_mass(row) > 0]
    removed = len(rows) - len(kept)
    if removed == 0:
        return len(kept)

    shutil.copyfile(file_path, file_path + UNFILTERED_SUFFIX)
    with open(file_path, "w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(kept)
    log_event(
        logger,
        logging.INFO,
        "csv_zero_vote_rows_filtered",
        path=file_path,
        removed=removed,
        remaining=len(kept),
    )
    return len(kept)


def _vote_mass(row: dict[str, str | None]) -> int:
    return sum(_to_int(row.get(column)) for column in VOTE_COLUMNS)


def _to_int(value: str | None) -> int:
    if value is None:
        return 0
    try:
        return int(float(value))
    except (ValueError, OverflowError):
        return 0
