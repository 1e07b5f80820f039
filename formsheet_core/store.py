"""
Tabular Store - Shared 2-D grid acting as the system of record

Provides a storage abstraction addressed by 1-indexed (row, column), with
row 1 reserved for the header. Two backends:

- ``InMemoryStore``: list-backed grid, used by tests and the ``memory`` backend.
- ``WorkbookStore``: an ``.xlsx`` worksheet on disk, read and written with openpyxl.

Every store owns an ``ExclusiveLock`` and emits a ``RowWritten`` event to its
subscribers after each data row write.
"""

import logging
import os
import tempfile
import threading
import time
import zipfile
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from .errors import StoreError
from .locking import ExclusiveLock

logger = logging.getLogger(__name__)


# =============================================================================
# Presentation
# =============================================================================

@dataclass
class HeaderStyle:
    """Presentation of the header row."""
    bold: bool = True
    background: str = "#4ECDC4"
    foreground: str = "#FFFFFF"
    wrap: bool = True
    vertical: str = "middle"
    horizontal: str = "center"
    frozen_rows: int = 1
    column_width: int = 150  # pixels


@dataclass
class RowStyle:
    """Presentation of data rows (zebra striping on even rows)."""
    even_background: str = "#F7F7F7"
    wrap: bool = True
    borders: bool = True
    vertical: str = "top"


# =============================================================================
# Events
# =============================================================================

@dataclass
class RowWritten:
    """Emitted after a data row (row >= 2) has been written."""
    row_index: int
    values: List[str]
    sheet: str
    written_at: float = field(default_factory=time.time)


StoreListener = Callable[[RowWritten], None]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


# =============================================================================
# Abstract Store
# =============================================================================

class TabularStore(ABC):
    """
    Abstract tabular store.

    Subclasses implement the raw grid primitives; header handling, appends
    and events are shared here.
    """

    def __init__(self, name: str, lock: Optional[ExclusiveLock] = None):
        self.name = name
        self.lock = lock or ExclusiveLock()
        self._listeners: List[StoreListener] = []
        self._listeners_lock = threading.Lock()

    # -------------------------------------------------------------------------
    # Grid primitives
    # -------------------------------------------------------------------------

    @abstractmethod
    def last_row_index(self) -> int:
        """Index of the last row holding a non-empty cell (0 when empty)."""
        pass

    @abstractmethod
    def last_column_index(self) -> int:
        """Index of the last column holding a non-empty cell (0 when empty)."""
        pass

    @abstractmethod
    def read_row(self, index: int, width: Optional[int] = None) -> List[str]:
        """Read a row as strings, ``width`` cells wide (defaults to the last column)."""
        pass

    @abstractmethod
    def _write_cells(self, index: int, values: Sequence[str]) -> None:
        """Write values into row ``index`` starting at column 1."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove all content and presentation."""
        pass

    @abstractmethod
    def apply_header_style(self, width: int, style: HeaderStyle) -> None:
        pass

    @abstractmethod
    def apply_row_style(self, index: int, width: int, style: RowStyle) -> None:
        pass

    # -------------------------------------------------------------------------
    # Exclusive access
    # -------------------------------------------------------------------------

    def acquire_exclusive(self, timeout: float) -> None:
        self.lock.acquire(timeout)

    def release(self) -> None:
        self.lock.release()

    @contextmanager
    def exclusive(self, timeout: float) -> Iterator["TabularStore"]:
        """Hold the store lock for the duration of the block."""
        with self.lock.hold(timeout):
            yield self

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """Register a listener for ``RowWritten`` events. Returns an unsubscribe callable."""
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: RowWritten) -> None:
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                # A listener never gets to fail the write that triggered it
                logger.exception(f"Store listener {listener!r} failed on row {event.row_index}")

    # -------------------------------------------------------------------------
    # Header and rows
    # -------------------------------------------------------------------------

    def read_schema(self) -> List[str]:
        """Row 1 without trailing blank cells; empty when there is no header."""
        if self.last_row_index() == 0 or self.last_column_index() == 0:
            return []
        labels = self.read_row(1)
        while labels and not labels[-1].strip():
            labels.pop()
        return labels

    def write_schema(
        self,
        labels: Sequence[str],
        style: Optional[HeaderStyle] = None,
        clear: bool = True,
    ) -> None:
        """Replace the header row wholesale (optionally clearing the grid first)."""
        if clear:
            self.clear()
        self._write_cells(1, [str(label) for label in labels])
        if style is not None:
            self.apply_header_style(len(labels), style)

    def write_row(self, index: int, values: Sequence[Any]) -> None:
        """Write a data row at ``index`` and notify subscribers."""
        if index < 2:
            raise StoreError(f"Row {index} is reserved for the header")
        cells = [_cell_text(v) for v in values]
        self._write_cells(index, cells)
        self._emit(RowWritten(row_index=index, values=cells, sheet=self.name))

    def append_row(self, values: Sequence[Any]) -> int:
        """Write ``values`` after the last populated row. Returns the row index."""
        index = max(self.last_row_index(), 1) + 1
        self.write_row(index, values)
        return index

    def last_row(self) -> Optional[Tuple[int, List[str]]]:
        """The last populated row and its values, or None when the grid is empty."""
        index = self.last_row_index()
        if index == 0:
            return None
        return index, self.read_row(index)

    def read_all(self) -> List[List[str]]:
        """The whole grid as a rectangular list of strings."""
        width = self.last_column_index()
        return [self.read_row(i, width) for i in range(1, self.last_row_index() + 1)]


# =============================================================================
# In-memory backend
# =============================================================================

class InMemoryStore(TabularStore):
    """
    List-backed grid.

    Presentation calls are recorded in ``header_style``, ``row_styles`` and
    ``frozen_rows`` so tests can inspect them.
    """

    def __init__(self, name: str = "Réponses", rows: Optional[List[List[Any]]] = None):
        super().__init__(name)
        self._rows: List[List[str]] = []
        self._io_lock = threading.RLock()
        self.header_style: Optional[HeaderStyle] = None
        self.row_styles: Dict[int, RowStyle] = {}
        self.frozen_rows = 0
        self.clear_count = 0
        for i, row in enumerate(rows or [], start=1):
            self._write_cells(i, [_cell_text(v) for v in row])

    def last_row_index(self) -> int:
        with self._io_lock:
            for i in range(len(self._rows), 0, -1):
                if any(cell != "" for cell in self._rows[i - 1]):
                    return i
            return 0

    def last_column_index(self) -> int:
        with self._io_lock:
            last = 0
            for row in self._rows:
                for j in range(len(row), last, -1):
                    if row[j - 1] != "":
                        last = j
                        break
            return last

    def read_row(self, index: int, width: Optional[int] = None) -> List[str]:
        with self._io_lock:
            if width is None:
                width = self.last_column_index()
            row = self._rows[index - 1] if 0 < index <= len(self._rows) else []
            return [row[j] if j < len(row) else "" for j in range(width)]

    def _write_cells(self, index: int, values: Sequence[str]) -> None:
        with self._io_lock:
            while len(self._rows) < index:
                self._rows.append([])
            row = self._rows[index - 1]
            if len(row) < len(values):
                row.extend([""] * (len(values) - len(row)))
            for j, value in enumerate(values):
                row[j] = value

    def clear(self) -> None:
        with self._io_lock:
            self._rows = []
            self.header_style = None
            self.row_styles = {}
            self.frozen_rows = 0
            self.clear_count += 1

    def apply_header_style(self, width: int, style: HeaderStyle) -> None:
        self.header_style = style
        self.frozen_rows = style.frozen_rows

    def apply_row_style(self, index: int, width: int, style: RowStyle) -> None:
        self.row_styles[index] = style


# =============================================================================
# Workbook backend (openpyxl)
# =============================================================================

_VERTICAL = {"middle": "center", "center": "center", "top": "top", "bottom": "bottom"}


def _argb(color: str) -> str:
    return color.lstrip("#").upper()


def _px_to_width(pixels: int) -> float:
    """Convert a pixel width to Excel character units."""
    return round(max(pixels - 5, 0) / 7, 2)


def _worksheet_text(value: str) -> str:
    # Control characters other than tab and newlines are not allowed in xlsx cells
    return ILLEGAL_CHARACTERS_RE.sub("", value)


class WorkbookStore(TabularStore):
    """
    One worksheet of an ``.xlsx`` file.

    The sheet named ``sheet_name`` is used when present, otherwise the first
    sheet. The workbook is cached in memory and reloaded whenever the file
    changes on disk; writes go through a temporary file and ``os.replace``.
    A ``<path>.lock`` file lock extends the exclusive lock across processes.
    """

    def __init__(self, path: Union[str, Path], sheet_name: str = "Réponses"):
        self.path = Path(path)
        self.sheet_name = sheet_name
        self.path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(sheet_name, ExclusiveLock(Path(str(self.path) + ".lock")))
        self._io_lock = threading.RLock()
        self._workbook: Optional[Workbook] = None
        self._stamp: Optional[Tuple[int, int]] = None

    # -------------------------------------------------------------------------
    # File I/O
    # -------------------------------------------------------------------------

    def _file_stamp(self) -> Optional[Tuple[int, int]]:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return None
        return stat.st_mtime_ns, stat.st_size

    def _open(self) -> Workbook:
        stamp = self._file_stamp()
        if self._workbook is not None and stamp == self._stamp:
            return self._workbook

        if stamp is None:
            wb = Workbook()
            wb.active.title = self.sheet_name
        else:
            try:
                wb = load_workbook(self.path)
            except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
                logger.error(f"Cannot read workbook {self.path}: {e}")
                raise StoreError() from e

        self._workbook = wb
        self._stamp = stamp
        return wb

    def _sheet(self, wb: Workbook):
        if self.sheet_name in wb.sheetnames:
            return wb[self.sheet_name]
        return wb.worksheets[0]

    def _save(self, wb: Workbook) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp")
        os.close(fd)
        try:
            wb.save(tmp_name)
            os.replace(tmp_name, self.path)
        except OSError as e:
            logger.error(f"Cannot write workbook {self.path}: {e}")
            raise StoreError() from e
        finally:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
        self._stamp = self._file_stamp()

    # -------------------------------------------------------------------------
    # Grid primitives
    # -------------------------------------------------------------------------

    def _bounds(self) -> Tuple[int, int]:
        ws = self._sheet(self._open())
        last_row = last_col = 0
        for row in ws.iter_rows():
            for cell in row:
                if cell.value is not None and cell.value != "":
                    last_row = max(last_row, cell.row)
                    last_col = max(last_col, cell.column)
        return last_row, last_col

    def last_row_index(self) -> int:
        with self._io_lock:
            return self._bounds()[0]

    def last_column_index(self) -> int:
        with self._io_lock:
            return self._bounds()[1]

    def read_row(self, index: int, width: Optional[int] = None) -> List[str]:
        with self._io_lock:
            if width is None:
                width = self._bounds()[1]
            if width == 0:
                return []
            ws = self._sheet(self._open())
            return [_cell_text(ws.cell(row=index, column=j).value) for j in range(1, width + 1)]

    @contextmanager
    def _editing(self) -> Iterator[Tuple[Workbook, Any]]:
        """
        Yield the workbook and sheet for an edit, then save it.

        If the edit or the save fails, the cached workbook is dropped so the
        next read reloads the last saved file.
        """
        with self._io_lock:
            wb = self._open()
            try:
                yield wb, self._sheet(wb)
                self._save(wb)
            except Exception:
                self._workbook = None
                self._stamp = None
                raise

    def _write_cells(self, index: int, values: Sequence[str]) -> None:
        with self._editing() as (wb, ws):
            for j, value in enumerate(values, start=1):
                cell = ws.cell(row=index, column=j)
                cell.value = _worksheet_text(value)
                # Submitted text is data, never a formula
                cell.data_type = "s"

    def clear(self) -> None:
        with self._editing() as (wb, ws):
            title = ws.title
            position = wb.sheetnames.index(title)
            wb.remove(ws)
            wb.create_sheet(title=title, index=position)
            wb.active = position

    def apply_header_style(self, width: int, style: HeaderStyle) -> None:
        with self._editing() as (wb, ws):
            font = Font(bold=style.bold, color=_argb(style.foreground))
            fill = PatternFill(fill_type="solid", start_color=_argb(style.background), end_color=_argb(style.background))
            alignment = Alignment(
                wrap_text=style.wrap,
                vertical=_VERTICAL.get(style.vertical, "center"),
                horizontal=style.horizontal,
            )
            for j in range(1, width + 1):
                cell = ws.cell(row=1, column=j)
                cell.font = font
                cell.fill = fill
                cell.alignment = alignment
                ws.column_dimensions[get_column_letter(j)].width = _px_to_width(style.column_width)
            if style.frozen_rows:
                ws.freeze_panes = ws.cell(row=style.frozen_rows + 1, column=1).coordinate

    def apply_row_style(self, index: int, width: int, style: RowStyle) -> None:
        with self._editing() as (wb, ws):
            side = Side(style="thin")
            border = Border(left=side, right=side, top=side, bottom=side) if style.borders else Border()
            alignment = Alignment(wrap_text=style.wrap, vertical=_VERTICAL.get(style.vertical, "top"))
            fill = None
            if index % 2 == 0:
                color = _argb(style.even_background)
                fill = PatternFill(fill_type="solid", start_color=color, end_color=color)
            for j in range(1, width + 1):
                cell = ws.cell(row=index, column=j)
                cell.border = border
                cell.alignment = alignment
                if fill is not None:
                    cell.fill = fill


def create_store(config) -> TabularStore:
    """Build the store selected by ``config.store.backend``."""
    if config.store.backend == "memory":
        return InMemoryStore(name=config.store.sheet_name)
    return WorkbookStore(config.store.path, sheet_name=config.store.sheet_name)
