"""
Tests for the CSV parser and field mapper.
"""
import pytest

from core.exceptions import EmptyFileError, MissingMappingError
from services.csv_import import (
    compute_file_hash,
    detect_mapping,
    normalize_and_validate_row,
    parse_all_rows,
    parse_date,
    parse_headers,
    parse_rate,
    preview_csv,
)


FULL_MAPPING = {"name": 0, "email": 1, "status": 2, "join_date": 3, "cancel_date": 4, "monthly_rate": 5}


class TestParseDate:
    @pytest.mark.parametrize("raw", ["2024-03-05", "03/05/2024", "03-05-2024", "05.03.2024"])
    def test_common_formats_normalize(self, raw):
        assert parse_date(raw) == "2024-03-05"

    def test_impossible_date_rejected(self):
        assert parse_date("13/40/2024") is None

    def test_two_digit_year_pivot(self):
        assert parse_date("03/05/24") == "2024-03-05"
        assert parse_date("03/05/99") == "1999-03-05"

    def test_month_names(self):
        assert parse_date("Jan 5, 2024") == "2024-01-05"
        assert parse_date("5 January 2024") == "2024-01-05"
        assert parse_date("Sept 30, 2023") == "2023-09-30"

    def test_blank_and_garbage(self):
        assert parse_date("") is None
        assert parse_date("   ") is None
        assert parse_date(None) is None
        assert parse_date("next tuesday") is None

    def test_iso_timestamp(self):
        assert parse_date("2024-03-05T10:00:00Z") == "2024-03-05"


class TestDetectMapping:
    def test_member_name_email_join_date(self):
        mapping, confidence = detect_mapping(["Member Name", "Email", "Join Date"])
        assert mapping["name"] == 0
        assert mapping["email"] == 1
        assert mapping["join_date"] == 2
        for fname in ("name", "email", "join_date"):
            assert confidence[fname] in ("high", "medium")
        assert mapping["status"] == -1
        assert confidence["status"] == "unmapped"

    def test_canonical_headers_are_high_confidence(self):
        mapping, confidence = detect_mapping(["name", "email", "status", "join_date", "cancel_date", "monthly_rate"])
        assert mapping == FULL_MAPPING
        assert set(confidence.values()) == {"high"}

    def test_substring_match_is_low(self):
        mapping, confidence = detect_mapping(["Client Name (Legal)", "Primary Email"])
        assert mapping["name"] == 0
        assert mapping["email"] == 1
        assert confidence["name"] == "low"

    def test_column_not_claimed_twice(self):
        mapping, _ = detect_mapping(["name", "cancelled"])
        assert mapping["name"] == 0
        assert mapping["cancel_date"] == 1
        assert mapping["status"] == -1


class TestRowValidation:
    def test_missing_name_single_error(self):
        member, errors = normalize_and_validate_row(["", "", "", "2024-01-01", "", ""], FULL_MAPPING, 2)
        assert member is None
        assert len(errors) == 1
        assert errors[0].field == "name"

    def test_bad_join_date_and_bad_email(self):
        member, errors = normalize_and_validate_row(
            ["Ana", "not-an-email", "", "someday", "", ""], FULL_MAPPING, 7
        )
        assert member is None
        assert sorted(e.field for e in errors) == ["email", "join_date"]
        assert all(e.row == 7 for e in errors)

    def test_cancel_before_join_rejected(self):
        member, errors = normalize_and_validate_row(
            ["Ana", "", "cancelled", "2024-05-01", "2024-04-01", "99"], FULL_MAPPING, 2
        )
        assert member is None
        assert errors[0].field == "cancel_date"

    def test_valid_row_normalized(self):
        member, errors = normalize_and_validate_row(
            ["  <Ana> Lima ", "ANA@Example.com", "Canceled", "03/05/2024", "2024-06-01", "$1,250.00"],
            FULL_MAPPING,
            2,
        )
        assert errors == []
        assert member.name == "Ana Lima"
        assert member.email == "ana@example.com"
        assert member.status == "cancelled"
        assert member.join_date == "2024-03-05"
        assert member.cancel_date == "2024-06-01"
        assert member.monthly_rate == "1250.00"

    def test_frozen_stays_active(self):
        member, _ = normalize_and_validate_row(["Bo", "", "frozen", "2024-01-01", "", ""], FULL_MAPPING, 2)
        assert member.status == "active"


class TestParseRate:
    def test_rate_never_fails(self):
        assert parse_rate("abc") == "0"
        assert parse_rate("") == "0"
        assert parse_rate("-20") == "0.00"
        assert parse_rate("€ 89,5") == "895.00"


class TestTokenizing:
    def test_empty_file_raises(self):
        with pytest.raises(EmptyFileError):
            parse_headers("")
        with pytest.raises(EmptyFileError):
            parse_headers("\n\n  \n")

    def test_quoted_fields_with_commas_and_newlines(self):
        text = 'name,notes\n"Smith, Jo","line one\nline two"\n'
        headers, records = parse_headers(text)
        assert headers == ["name", "notes"]
        assert records == [["Smith, Jo", "line one\nline two"]]

    def test_bom_stripped(self):
        headers, _ = parse_headers("\ufeffname,email\nA,a@b.co\n")
        assert headers[0] == "name"


class TestFileHash:
    def test_stable_and_length_suffixed(self):
        text = "name,join_date\nA,2024-01-01\n"
        assert compute_file_hash(text) == compute_file_hash(text)
        assert compute_file_hash(text).endswith(f"-{len(text)}")
        assert compute_file_hash(text) != compute_file_hash(text + "B,2024-01-02\n")


class TestPreview:
    CSV = (
        "Member Name,Email,Join Date,Rate\n"
        "Ana,ana@example.com,2024-01-05,150\n"
        ",bad,2024-01-05,100\n"
        "Bo,bo@example.com,01/20/2024,$120\n"
    )

    def test_preview_summary(self):
        result = preview_csv(self.CSV)
        assert result.headers == ["Member Name", "Email", "Join Date", "Rate"]
        assert result.total_rows == 3
        assert len(result.sample_rows) == 3
        assert result.validation.valid_rows == 2
        assert result.validation.error_rows == 1
        assert {e.field for e in result.validation.errors} == {"name", "email"}
        assert result.duplicate_import is False

    def test_override_marks_manual(self):
        result = preview_csv(self.CSV, override_mapping={"monthly_rate": 3, "status": -1})
        assert result.confidence["monthly_rate"] == "manual"
        assert result.confidence["status"] == "unmapped"

    def test_duplicate_flag(self):
        result = preview_csv(self.CSV, previous_hashes={compute_file_hash(self.CSV)})
        assert result.duplicate_import is True

    def test_sample_bounded_to_twenty_rows(self):
        rows = "".join(f"M{i},m{i}@example.com,2024-01-01,100\n" for i in range(30))
        result = preview_csv("name,email,join_date,rate\n" + rows)
        assert result.total_rows == 30
        assert len(result.sample_rows) == 20
        assert result.validation.valid_rows == 30

    def test_error_sample_bounded(self):
        rows = "".join(f",x{i},bad,\n" for i in range(80))
        result = preview_csv("name,email,join_date,rate\n" + rows)
        assert result.validation.error_rows == 80
        assert len(result.validation.errors) <= 100
        assert result.validation.error_count > len(result.validation.errors)


class TestParseAllRows:
    def test_requires_name_and_join_date(self):
        with pytest.raises(MissingMappingError) as exc:
            parse_all_rows("name,joined\nA,2024-01-01\n", {"name": 0, "join_date": -1})
        assert exc.value.field == "join_date"

    def test_every_row_validated(self):
        rows = "".join(f"M{i},2024-01-01\n" for i in range(45)) + ",2024-01-01\n"
        result = parse_all_rows("name,join_date\n" + rows, {"name": 0, "join_date": 1})
        assert len(result.members) == 45
        assert result.error_count == 1
        assert result.total_rows == 46

    def test_error_rows_keep_source_line_after_blank_lines(self):
        result = parse_all_rows("name,join_date\nA,2024-01-01\n\nB,not-a-date\n", {"name": 0, "join_date": 1})
        assert len(result.members) == 1
        assert [e.row for e in result.errors] == [4]

    def test_multiline_record_advances_line_numbers(self):
        text = 'name,join_date\n"Ana\nSmith",2024-01-01\n,2024-01-01\n'
        result = preview_csv(text, override_mapping={"name": 0, "join_date": 1})
        assert [e.row for e in result.validation.errors] == [4]
