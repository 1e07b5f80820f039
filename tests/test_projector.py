"""
Tests for the Row Projector
"""

from zoneinfo import ZoneInfo

import pytest

from formsheet_core.errors import SchemaInvalidError
from formsheet_core.projector import format_timestamp, project_row
from formsheet_core.schema import CANONICAL_SCHEMA


class TestProjectRow:
    """Mapping records onto the header order."""

    def test_canonical_projection(self, sample_fields):
        record = dict(sample_fields, timestamp="2025-10-19T08:30:15.000Z")
        row = project_row(CANONICAL_SCHEMA, record, ZoneInfo("UTC"))
        assert row == [
            "19/10/2025 08:30:15",
            "Dupont",
            "Jean",
            "jean.dupont@example.com",
            "+216 12 345 678",
            "ESPRIT",
            "https://facebook.com/jeandupont",
        ]

    def test_missing_field_is_empty_string(self, sample_fields):
        record = dict(sample_fields, timestamp="2025-10-19T08:30:15.000Z")
        del record["universite"]
        row = project_row(CANONICAL_SCHEMA, record)
        assert row[CANONICAL_SCHEMA.index("Université")] == ""
        assert len(row) == len(CANONICAL_SCHEMA)

    def test_none_value_is_empty_string(self):
        row = project_row(["Nom"], {"nom": None})
        assert row == [""]

    def test_follows_header_order(self):
        row = project_row(["Email", "Nom"], {"nom": "Dupont", "email": "a@b.c"})
        assert row == ["a@b.c", "Dupont"]

    def test_unmapped_label_used_as_key(self):
        row = project_row(["Nom", "Promo"], {"nom": "Dupont", "Promo": "2026"})
        assert row == ["Dupont", "2026"]

    def test_values_coerced_to_text(self):
        row = project_row(["Nom", "Age"], {"nom": 42, "Age": 20.5})
        assert row == ["42", "20.5"]

    def test_empty_schema_rejected(self):
        with pytest.raises(SchemaInvalidError):
            project_row([], {"nom": "Dupont"})


class TestFormatTimestamp:
    """Display formatting of the timestamp column."""

    def test_utc_iso(self):
        assert format_timestamp("2025-10-19T08:30:15.000Z", ZoneInfo("UTC")) == "19/10/2025 08:30:15"

    def test_converted_to_configured_zone(self):
        # Tunis is UTC+1 all year
        assert format_timestamp("2025-10-19T08:30:15.000Z", ZoneInfo("Africa/Tunis")) == "19/10/2025 09:30:15"

    def test_offset_timestamp(self):
        assert format_timestamp("2025-10-19T10:30:15+02:00", ZoneInfo("UTC")) == "19/10/2025 08:30:15"

    def test_naive_timestamp_taken_as_local(self):
        assert format_timestamp("2025-10-19T10:30:15", ZoneInfo("Africa/Tunis")) == "19/10/2025 10:30:15"

    def test_epoch_milliseconds(self):
        assert format_timestamp(0, ZoneInfo("UTC")) == "01/01/1970 00:00:00"

    def test_unparseable_passed_through(self):
        assert format_timestamp("hier soir", ZoneInfo("UTC")) == "hier soir"

    def test_unparseable_in_row(self):
        row = project_row(["Timestamp", "Nom"], {"timestamp": "not a date", "nom": "X"})
        assert row == ["not a date", "X"]
