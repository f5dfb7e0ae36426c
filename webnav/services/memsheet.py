import csv
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from webnav.config import get_settings

logger = logging.getLogger(__name__)

_A1_RE = re.compile(r"^([A-Za-z]+)(.*)$")


def column_index(col: Union[str, int]) -> int:
    """Zero-based index of a spreadsheet column (``"A"`` or 1 -> 0, ``"AA"`` -> 26)."""
    if isinstance(col, int):
        if col < 1:
            raise ValueError(f"Column numbers start at 1, got {col}")
        return col - 1
    letters = col.strip().upper()
    if not letters or not letters.isalpha() or not letters.isascii():
        raise ValueError(f"Invalid column {col!r}")
    index = 0
    for letter in letters:
        index = index * 26 + (ord(letter) - ord("A") + 1)
    return index - 1


class SheetStore(ABC):
    @abstractmethod
    def write(self, name: str, rows: List[List[Any]]) -> None:
        raise NotImplementedError


class CsvSheetStore(SheetStore):
    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or get_settings().sheet_dir)

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.csv"

    def write(self, name: str, rows: List[List[Any]]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with self.path_for(name).open("w", encoding="utf-8", newline="") as handle:
            csv.writer(handle).writerows(rows)


class Cell:
    def __init__(self, sheet: "MemSheet", row: int, col: int):
        self.sheet = sheet
        self.row = row
        self.col = col

    def get_value(self) -> Any:
        return self.sheet.rows[self.row][self.col]

    def set_value(self, value: Any) -> None:
        self.sheet.rows[self.row][self.col] = value

    def __repr__(self) -> str:
        return f"Cell({self.sheet.name!r}, row={self.row}, col={self.col})"


class MemSheet:
    """In-memory sheet addressed with A1 references, written out on flush."""

    def __init__(self, name: str):
        self.name = name
        self.rows: Dict[int, Dict[int, Any]] = {}
        self.max_row = -1
        self.max_col = -1

    def get_range(self, col: Union[str, int], row: Union[str, int, None] = None) -> Cell:
        if row is None:
            if not isinstance(col, str):
                raise ValueError("A row is required when the column is a number")
            match = _A1_RE.match(col.strip())
            if not match:
                raise ValueError(f"Invalid cell reference {col!r}")
            col, row = match.group(1), match.group(2)

        try:
            r = int(row) - 1
        except ValueError:
            raise ValueError(
                "Multicell ranges not supported unless separating col and row in separate parameters"
            ) from None
        if r < 0:
            raise ValueError(f"Row numbers start at 1, got {row}")
        c = column_index(col)

        self.max_row = max(self.max_row, r)
        self.max_col = max(self.max_col, c)
        self.rows.setdefault(r, {}).setdefault(c, 0)
        return Cell(self, r, c)

    def fill(self) -> List[List[Any]]:
        """Dense rows covering every touched cell; gaps become empty strings."""
        width = self.max_col + 1
        dense = []
        for r in range(self.max_row + 1):
            cells = self.rows.get(r, {})
            dense.append([cells.get(c, "") for c in range(width)])
        return dense


class MemSheetApp:
    def __init__(self, store: Optional[SheetStore] = None):
        self.store = store or CsvSheetStore()
        self.sheets: List[MemSheet] = []

    def create(self, name: str) -> MemSheet:
        sheet = MemSheet(name)
        self.sheets.append(sheet)
        return sheet

    def flush(self) -> None:
        for sheet in self.sheets:
            rows = sheet.fill()
            logger.info("Flushing sheet %s (%d rows)", sheet.name, len(rows))
            self.store.write(sheet.name, rows)
