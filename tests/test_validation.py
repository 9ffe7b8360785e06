"""Upload validation and preview tests."""

from __future__ import annotations

import pytest

from core.validation import (
    MAX_FILE_SIZE,
    REQUIRED_HEADERS,
    UploadValidationError,
    get_preview,
    read_table,
    validate_file_size,
    validate_file_type,
    validate_headers,
    validate_upload,
)

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class TestFileChecks:
    def test_extension_and_content_type(self):
        assert validate_file_type("Voyage Events.xlsx", XLSX)
        assert validate_file_type("list.CSV", None)
        assert validate_file_type("old.xls", "application/vnd.ms-excel")
        assert not validate_file_type("notes.txt", "text/plain")
        assert not validate_file_type("data.csv", "application/pdf")

    def test_size_limit(self):
        assert validate_file_size(MAX_FILE_SIZE)
        assert not validate_file_size(MAX_FILE_SIZE + 1)

    def test_validate_upload_messages(self):
        with pytest.raises(UploadValidationError, match="Invalid File Type: Voyage Events"):
            validate_upload("voyage_events", "events.pdf", "application/pdf", b"x")
        with pytest.raises(UploadValidationError, match="empty"):
            validate_upload("bulk_actions", "bulk.csv", "text/csv", b"")
        with pytest.raises(UploadValidationError, match="big.csv exceeds 50MB limit"):
            validate_upload("bulk_actions", "big.csv", "text/csv", b"a" * (MAX_FILE_SIZE + 1))


class TestHeaders:
    def test_missing_headers_listed(self):
        ok, missing = validate_headers(["Vessel Name", "Action", "Qty"], REQUIRED_HEADERS["bulk_actions"])
        assert not ok
        assert missing == ["Bulk Type"]

    def test_case_insensitive_substring(self):
        ok, missing = validate_headers(["EVENT", "Location", "From Date", "To Date"], REQUIRED_HEADERS["voyage_events"])
        assert ok
        assert missing == []


class TestPreview:
    def test_csv_preview(self):
        preview = get_preview(b"A,B\n1,2\n3,4\n", "sample.csv")
        assert preview["headers"] == ["A", "B"]
        assert preview["row_count"] == 2
        assert len(preview["sample_data"]) == 2

    def test_sample_is_capped(self):
        body = "Col\n" + "\n".join(str(i) for i in range(25)) + "\n"
        preview = get_preview(body.encode(), "long.csv", sample_size=10)
        assert preview["row_count"] == 25
        assert len(preview["sample_data"]) == 10

    def test_xlsx_round_trip(self, raw_bulk_actions, to_xlsx):
        df = read_table(to_xlsx(raw_bulk_actions), "Bulk Actions.xlsx")
        assert list(df.columns) == list(raw_bulk_actions.columns)
        assert len(df) == 6

    def test_empty_content_rejected(self):
        with pytest.raises(UploadValidationError):
            read_table(b"", "empty.xlsx")
