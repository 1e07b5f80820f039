"""
Tests for the Tabular Store backends
"""

import threading

import pytest
from openpyxl import Workbook, load_workbook

import formsheet_core.store as store_module
from formsheet_core.errors import LockTimeoutError, StoreError
from formsheet_core.locking import ExclusiveLock
from formsheet_core.schema import CANONICAL_SCHEMA, ensure_schema
from formsheet_core.store import HeaderStyle, InMemoryStore, RowStyle, WorkbookStore


class TestInMemoryStore:

    def test_empty(self, empty_store):
        assert empty_store.last_row_index() == 0
        assert empty_store.last_column_index() == 0
        assert empty_store.read_schema() == []
        assert empty_store.last_row() is None

    def test_write_and_read(self, headed_store):
        headed_store.write_row(2, ["a", "b"])
        assert headed_store.last_row_index() == 2
        assert headed_store.read_row(2) == ["a", "b", "", "", "", "", ""]
        assert headed_store.read_row(2, width=2) == ["a", "b"]

    def test_append_row(self, headed_store):
        assert headed_store.append_row(["x"]) == 2
        assert headed_store.append_row(["y"]) == 3

    def test_header_row_is_reserved(self, headed_store):
        with pytest.raises(StoreError):
            headed_store.write_row(1, ["x"])

    def test_read_all_is_rectangular(self):
        store = InMemoryStore(rows=[["A", "B", "C"], ["1"]])
        assert store.read_all() == [["A", "B", "C"], ["1", "", ""]]

    def test_events(self, headed_store):
        events = []
        unsubscribe = headed_store.subscribe(events.append)
        headed_store.write_row(2, ["a"])
        unsubscribe()
        headed_store.write_row(3, ["b"])
        assert [e.row_index for e in events] == [2]
        assert events[0].values == ["a"]

    def test_failing_listener_does_not_break_write(self, headed_store):
        def boom(event):
            raise RuntimeError("listener failure")

        headed_store.subscribe(boom)
        headed_store.write_row(2, ["a"])
        assert headed_store.last_row_index() == 2


class TestExclusiveLock:

    def test_timeout_when_held(self):
        lock = ExclusiveLock()
        holder_ready = threading.Event()
        release = threading.Event()

        def holder():
            with lock.hold(timeout=1):
                holder_ready.set()
                release.wait(5)

        t = threading.Thread(target=holder)
        t.start()
        holder_ready.wait(5)
        try:
            with pytest.raises(LockTimeoutError):
                lock.acquire(timeout=0.05)
        finally:
            release.set()
            t.join()

    def test_released_after_exception(self):
        lock = ExclusiveLock()
        with pytest.raises(ValueError):
            with lock.hold(timeout=1):
                raise ValueError("inside")
        assert not lock.locked

    def test_file_lock(self, temp_dir):
        lock = ExclusiveLock(temp_dir / "store.xlsx.lock")
        with lock.hold(timeout=1):
            assert lock.locked
        assert not lock.locked


class TestWorkbookStore:

    def test_creates_workbook_on_first_write(self, temp_dir):
        path = temp_dir / "data" / "reponses.xlsx"
        store = WorkbookStore(path)
        assert store.last_row_index() == 0
        ensure_schema(store)
        assert path.exists()
        wb = load_workbook(path)
        assert wb.sheetnames == ["Réponses"]
        assert [c.value for c in wb["Réponses"][1]] == CANONICAL_SCHEMA

    def test_header_presentation(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store, style=HeaderStyle())
        ws = load_workbook(path)["Réponses"]
        cell = ws["A1"]
        assert cell.font.bold
        assert cell.fill.start_color.rgb.endswith("4ECDC4")
        assert cell.alignment.horizontal == "center"
        assert cell.alignment.wrap_text
        assert ws.freeze_panes == "A2"

    def test_row_presentation(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store)
        store.write_row(2, ["a"] * 7)
        store.write_row(3, ["b"] * 7)
        store.apply_row_style(2, 7, RowStyle())
        store.apply_row_style(3, 7, RowStyle())
        ws = load_workbook(path)["Réponses"]
        assert ws["A2"].fill.start_color.rgb.endswith("F7F7F7")
        assert ws["A3"].fill.fill_type is None
        assert ws["A3"].border.left.style == "thin"
        assert ws["A3"].alignment.vertical == "top"

    def test_rows_visible_to_another_instance(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        first = WorkbookStore(path)
        ensure_schema(first)
        first.write_row(2, ["x"] * 7)

        second = WorkbookStore(path)
        assert second.last_row_index() == 2
        assert second.read_row(2) == ["x"] * 7

    def test_formula_like_text_stored_as_text(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store)
        store.write_row(2, ["=HYPERLINK(\"http://evil\")"])
        cell = load_workbook(path)["Réponses"]["A2"]
        assert cell.data_type == "s"
        assert store.read_row(2, width=1) == ["=HYPERLINK(\"http://evil\")"]

    def test_falls_back_to_first_sheet(self, temp_dir):
        path = temp_dir / "other.xlsx"
        wb = Workbook()
        wb.active.title = "Feuille 1"
        wb.active.append(["Nom", "Email"])
        wb.save(path)

        store = WorkbookStore(path)
        assert store.read_schema() == ["Nom", "Email"]

    def test_clear_keeps_sheet_name(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store)
        store.clear()
        assert store.last_row_index() == 0
        assert load_workbook(path).sheetnames == ["Réponses"]

    def test_corrupt_file(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        path.write_bytes(b"not a zip file")
        store = WorkbookStore(path)
        with pytest.raises(StoreError):
            store.last_row_index()

    def test_control_characters_removed(self, temp_dir):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store)
        store.write_row(2, ["Je\u0001an", "ligne 1\nligne 2\tfin"])
        row = [c.value for c in load_workbook(path)["Réponses"][2]][:2]
        assert row == ["Jean", "ligne 1\nligne 2\tfin"]

    def test_failed_write_leaves_no_partial_row(self, temp_dir, monkeypatch):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store)

        def refuse(value):
            if value == "boom":
                raise ValueError("unwritable value")
            return value

        monkeypatch.setattr(store_module, "_worksheet_text", refuse)
        with pytest.raises(ValueError):
            store.write_row(2, ["19/10/2025 08:30:15", "Dupont", "boom"])

        assert store.last_row_index() == 1
        assert load_workbook(path)["Réponses"].max_row == 1

    def test_failed_save_discards_edits(self, temp_dir, monkeypatch):
        path = temp_dir / "reponses.xlsx"
        store = WorkbookStore(path)
        ensure_schema(store)

        def broken_save(wb):
            raise StoreError()

        monkeypatch.setattr(store, "_save", broken_save)
        with pytest.raises(StoreError):
            store.write_row(2, ["x"] * 7)
        monkeypatch.undo()

        assert store.last_row_index() == 1
        store.write_row(2, ["y"] * 7)
        assert WorkbookStore(path).read_row(2) == ["y"] * 7
