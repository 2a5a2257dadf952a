import csv
import io
import os

from sensemaking.conversation import Conversation
from sensemaking.csv_export import (
    EXPORT_HEADERS,
    CsvExporter,
    filter_zero_vote_comments_from_csv,
)


def _rows(text: str) -> list[list[str]]:
    return list(csv.reader(io.StringIO(text)))


def test_export_to_string_writes_header_and_votes(catalog):
    exporter = CsvExporter(Conversation("Debate", 1, catalog))
    rows = _rows(exporter.export_to_string())
    assert rows[0] == EXPORT_HEADERS
    assert rows[1] == ["1", "Yes please", "3", "1", "1", "5"]
    assert rows[2] == ["3", "No votes yet", "0", "0", "0", ""]


def test_export_keeps_multiline_bodies_quoted(catalog):
    exporter = CsvExporter(Conversation("Proposal", 1, catalog))
    rows = _rows(exporter.export_to_string())
    assert rows[1] == ["1", "More trees\n\nPlant trees in every street", "5", "0", "0", "7"]


def test_export_to_csv_writes_requested_path(tmp_path, catalog):
    target = tmp_path / "nested" / "input-1.csv"
    exporter = CsvExporter(Conversation("Poll", 1, catalog))
    written = exporter.export_to_csv(str(target))
    assert written == str(target)
    with open(written, newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    assert [row[0] for row in rows[1:]] == ["p_1_u_10", "p_1_u_11"]


def test_export_to_csv_defaults_to_temp_file(catalog):
    exporter = CsvExporter(Conversation("Topic", 1, catalog))
    written = exporter.export_to_csv()
    with open(written, newline="", encoding="utf-8") as handle:
        rows = list(csv.reader(handle))
    os.remove(written)
    assert rows == [EXPORT_HEADERS]


def _write(path, text: str) -> None:
    path.write_text(text, encoding="utf-8")


def test_filter_removes_zero_vote_rows_and_keeps_backup(tmp_path):
    path = tmp_path / "categorization-output-1.csv"
    original = (
        "comment-id,comment_text,agrees,disagrees,passes,author-id,topics\n"
        "1,Keep one,1,0,0,5,Parks\n"
        "2,Drop one,0,0,0,5,Parks\n"
        "3,Keep two,0,2,0,6,Traffic\n"
        "4,Drop two,0,0,0,,Traffic\n"
        "5,Keep three,0,0,1,7,Noise\n"
        "6,Drop three,0,0,0,8,Noise\n"
    )
    _write(path, original)

    remaining = filter_zero_vote_comments_from_csv(str(path))

    assert remaining == 3
    with open(path, newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert [row["comment-id"] for row in rows] == ["1", "3", "5"]
    assert [row["topics"] for row in rows] == ["Parks", "Traffic", "Noise"]
    backup = tmp_path / "categorization-output-1.csv.unfiltered"
    assert backup.read_text(encoding="utf-8") == original


def test_filter_leaves_file_untouched_when_nothing_to_remove(tmp_path):
    path = tmp_path / "output.csv"
    original = (
        "comment-id,comment_text,agrees,disagrees,passes,author-id\n"
        "1,One,1,0,0,5\n"
        "2,Two,0,1,0,5\n"
        "3,Three,0,0,4,6\n"
    )
    _write(path, original)

    assert filter_zero_vote_comments_from_csv(str(path)) == 3
    assert path.read_text(encoding="utf-8") == original
    assert not (tmp_path / "output.csv.unfiltered").exists()


def test_filter_treats_missing_vote_columns_as_zero(tmp_path):
    path = tmp_path / "partial.csv"
    _write(
        path,
        "comment-id,comment_text,agrees\n"
        "1,Voted,2\n"
        "2,Silent,0\n"
        "3,Garbled,n/a\n",
    )

    assert filter_zero_vote_comments_from_csv(str(path)) == 1
    with open(path, newline="", encoding="utf-8") as handle:
        rows = list(csv.DictReader(handle))
    assert rows == [{"comment-id": "1", "comment_text": "Voted", "agrees": "2"}]


def test_filter_missing_file_returns_none(tmp_path):
    missing = tmp_path / "absent.csv"
    assert filter_zero_vote_comments_from_csv(str(missing)) is None
    assert not missing.exists()


def test_filter_two_zero_rows_out_of_six(tmp_path):
    path = tmp_path / "input.csv"
    original = (
        "comment-id,comment_text,agrees,disagrees,passes,author-id\n"
        "1,A,1,0,0,1\n"
        "2,B,0,0,0,1\n"
        "3,C,2,1,0,1\n"
        "4,D,0,0,3,2\n"
        "5,E,0,0,0,2\n"
        "6,F,0,4,0,2\n"
    )
    _write(path, original)

    assert filter_zero_vote_comments_from_csv(str(path)) == 4
    backup_rows = (tmp_path / "input.csv.unfiltered").read_text(encoding="utf-8").splitlines()
    assert len(backup_rows) == 7


def test_filter_without_vote_columns_removes_every_row(tmp_path):
    path = tmp_path / "no-votes.csv"
    _write(path, "comment-id,comment_text\n1,A\n2,B\n")

    assert filter_zero_vote_comments_from_csv(str(path)) == 0
    assert path.read_text(encoding="utf-8").splitlines() == ["comment-id,comment_text"]
