"""
Unit tests for CSV row parsing in the importer.
"""

from datetime import date, datetime

import pytest

from kpd.domains.product_classes.importer import RowError, RowOk, parse_date, parse_level, parse_row
from kpd.shared.exceptions import DataValidationError

NOW = datetime(2025, 1, 1, 12, 0, 0)


def make_row(**overrides):
    row = {
        "official": "01.11.11",
        "start": "01.01.2008",
        "end": "",
        "name_hr": "Tvrda pšenica",
        "short_hr": "",
        "name_en": "Durum wheat",
        "short_en": "",
        "level": "6",
        "full_code": "A01.11.11",
    }
    row.update(overrides)
    return list(row.values())


class TestParseRow:

    def test_valid_row(self):
        parsed = parse_row(make_row(), 3, NOW)
        assert isinstance(parsed, RowOk)
        record = parsed.record
        assert parsed.line_number == 3
        assert record.full_code == "A01.11.11"
        assert record.official_code == "01.11.11"
        assert record.path == "A.01.1.1.1.1"
        assert record.level == 6
        assert record.start_date == date(2008, 1, 1)
        assert record.end_date is None
        assert record.inserted_at == NOW
        assert record.updated_at == NOW

    def test_fields_are_trimmed(self):
        parsed = parse_row(make_row(name_hr="  Tvrda pšenica ", full_code=" A01.11.11 ", level=" 6 "), 1, NOW)
        assert isinstance(parsed, RowOk)
        assert parsed.record.name_hr == "Tvrda pšenica"
        assert parsed.record.full_code == "A01.11.11"

    def test_end_date_parsed(self):
        parsed = parse_row(make_row(end="31.12.2020"), 1, NOW)
        assert parsed.record.end_date == date(2020, 12, 31)

    def test_extra_columns_ignored(self):
        parsed = parse_row(make_row() + ["unexpected"], 1, NOW)
        assert isinstance(parsed, RowOk)

    @pytest.mark.parametrize("official", ["", "01.11.11", "1.11.11", "99.99"])
    def test_official_code_column_is_ignored(self, official):
        parsed = parse_row(make_row(official=official), 1, NOW)
        assert parsed.record.official_code == "01.11.11"

    def test_timestamps_default_to_now(self):
        parsed = parse_row(make_row(), 1)
        assert parsed.record.inserted_at.microsecond == 0
        assert parsed.record.inserted_at == parsed.record.updated_at

    def test_too_few_columns(self):
        parsed = parse_row(["A", "01.01.2008"], 7, NOW)
        assert parsed == RowError(7, "Invalid row format on line 7: expected at least 9 columns")

    @pytest.mark.parametrize("overrides,reason", [
        ({"start": ""}, "Missing start date"),
        ({"start": "2008-01-01"}, "Invalid date format: 2008-01-01"),
        ({"end": "32.01.2020"}, "Invalid date format: 32.01.2020"),
        ({"level": "x"}, "Invalid level: x"),
        ({"level": "7"}, "Invalid level: 7"),
        ({"level": "0"}, "Invalid level: 0"),
        ({"level": "+6"}, "Invalid level: +6"),
        ({"level": "0_6"}, "Invalid level: 0_6"),
        ({"level": "\u0666"}, "Invalid level: \u0666"),
        ({"start": "01.1_0.2020"}, "Invalid date format: 01.1_0.2020"),
        ({"start": "+1.01.2020"}, "Invalid date format: +1.01.2020"),
        ({"start": "01. 1.2020"}, "Invalid date format: 01. 1.2020"),
        ({"end": "\uff10\uff11.01.2020"}, "Invalid date format: \uff10\uff11.01.2020"),
        ({"level": "5"}, "Level mismatch: expected 5 levels, got 6"),
        ({"name_hr": "  "}, "Missing Croatian name"),
        ({"name_en": ""}, "Missing English name"),
    ])
    def test_rejected_rows(self, overrides, reason):
        parsed = parse_row(make_row(**overrides), 4, NOW)
        assert parsed == RowError(4, reason)

    def test_level_mismatch_for_section_code(self):
        parsed = parse_row(make_row(full_code="A", level="2"), 1, NOW)
        assert parsed.reason == "Level mismatch: expected 2 levels, got 1"

    def test_unexpected_failure_is_reported(self):
        row = make_row()
        row[3] = None
        parsed = parse_row(row, 9, NOW)
        assert isinstance(parsed, RowError)
        assert parsed.reason.startswith("Parse error on line 9:")

    def test_undecodable_bytes_are_reported(self):
        # a 0xFF byte read with surrogateescape
        parsed = parse_row(make_row(name_hr="Tvrda p\udcffenica"), 2, NOW)
        assert isinstance(parsed, RowError)
        assert parsed.reason.startswith("Parse error on line 2: UnicodeDecodeError:")


class TestParseHelpers:

    def test_parse_date_blank(self):
        assert parse_date("  ") is None

    def test_parse_date_without_padding(self):
        assert parse_date("1.2.2008") == date(2008, 2, 1)

    def test_parse_date_invalid(self):
        with pytest.raises(DataValidationError, match="Invalid date format: 01/01/2008"):
            parse_date("01/01/2008")

    def test_parse_level(self):
        assert parse_level("3") == 3
        with pytest.raises(DataValidationError):
            parse_level("")

    @pytest.mark.parametrize("value", ["+3", "3_0", "\u0663", "\uff13"])
    def test_parse_level_requires_ascii_digits(self, value):
        with pytest.raises(DataValidationError, match="Invalid level"):
            parse_level(value)
