"""
Tests for the Schema Manager
"""

import pytest

from formsheet_core.errors import SchemaInvalidError
from formsheet_core.schema import (
    CANONICAL_SCHEMA,
    FIELD_MAPPING,
    ensure_schema,
    key_for_label,
    label_for_key,
)
from formsheet_core.store import HeaderStyle, InMemoryStore


class TestFieldMapping:

    def test_both_directions(self):
        assert key_for_label("Prénom") == "prenom"
        assert label_for_key("facebookLink") == "Lien Facebook"

    def test_unmapped_falls_back_to_itself(self):
        assert key_for_label("Promo") == "Promo"
        assert label_for_key("promo") == "promo"

    def test_every_canonical_label_is_mapped(self):
        assert set(CANONICAL_SCHEMA) == set(FIELD_MAPPING)


class TestEnsureSchema:

    def test_empty_store_gets_canonical_header(self, empty_store):
        headers = ensure_schema(empty_store)
        assert headers == CANONICAL_SCHEMA
        assert empty_store.read_row(1) == CANONICAL_SCHEMA
        assert empty_store.last_row_index() == 1

    def test_header_is_styled_and_frozen(self, empty_store):
        ensure_schema(empty_store, style=HeaderStyle(column_width=200))
        assert empty_store.header_style.background == "#4ECDC4"
        assert empty_store.header_style.column_width == 200
        assert empty_store.frozen_rows == 1

    def test_existing_header_untouched(self, headed_store):
        ensure_schema(headed_store)
        ensure_schema(headed_store)
        assert headed_store.clear_count == 0
        assert headed_store.header_style is None

    def test_custom_header_is_authoritative(self):
        store = InMemoryStore(rows=[["Nom", "Email", "Promo"]])
        assert ensure_schema(store) == ["Nom", "Email", "Promo"]
        assert store.clear_count == 0

    def test_trailing_blank_labels_trimmed(self):
        store = InMemoryStore(rows=[["Nom", "Email", "", ""]])
        assert ensure_schema(store) == ["Nom", "Email"]

    def test_blank_header_above_data_keeps_data(self):
        data = ["19/10/2025 08:30:15", "Dupont", "Jean", "j@x.tn", "1", "ESPRIT", ""]
        store = InMemoryStore(rows=[[""] * 7, data])
        headers = ensure_schema(store)
        assert headers == CANONICAL_SCHEMA
        assert store.read_row(2) == data
        assert store.clear_count == 0

    def test_blank_header_destructive_reset(self):
        data = ["19/10/2025 08:30:15", "Dupont", "Jean", "j@x.tn", "1", "ESPRIT", ""]
        store = InMemoryStore(rows=[[""] * 7, data])
        headers = ensure_schema(store, destructive_reset=True)
        assert headers == CANONICAL_SCHEMA
        assert store.last_row_index() == 1
        assert store.clear_count == 1

    def test_heal_failure_raises(self):
        class BrokenStore(InMemoryStore):
            """Accepts writes but never shows them back."""

            def read_schema(self):
                return []

        with pytest.raises(SchemaInvalidError):
            ensure_schema(BrokenStore())
