"""
Output Manager - destination workbook writer

Every location is written at most once; results arrive in completion order,
not scan order, so the writer keeps its own record of written cells.
"""
import logging
from pathlib import Path
from typing import Any, Set

from openpyxl import Workbook
from openpyxl.cell.cell import TYPE_STRING
from openpyxl.utils.exceptions import IllegalCharacterError

from core.exceptions import CellWriteError, DuplicateWriteError, OutputPathError
from core.registry import CellLocation

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {'.xlsx', '.xlsm'}


def validate_output_path(path: Path) -> Path:
    """Reject destinations that cannot be saved before any work starts."""
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise OutputPathError(f"Invalid destination filename {path}: expected an .xlsx file")
    if path.exists() and path.is_dir():
        raise OutputPathError(f"Invalid destination filename {path}: is a directory")
    parent = path.parent if str(path.parent) else Path('.')
    if not parent.is_dir():
        raise OutputPathError(f"Invalid destination filename {path}: directory {parent} does not exist")
    return path


class WorkbookWriter:
    """Collects translated cells into a new workbook with a single sheet."""

    def __init__(self, path: Path, sheet_name: str = "Worksheet"):
        self.path = validate_output_path(path)
        self.sheet_name = sheet_name
        self.workbook = Workbook()
        self.worksheet = self.workbook.active
        self.worksheet.title = sheet_name
        self._written: Set[CellLocation] = set()

    def write(self, location: CellLocation, value: Any) -> None:
        if location in self._written:
            raise DuplicateWriteError(f"Cell {location} written twice")

        cell = self.worksheet.cell(row=location.row + 1, column=location.column + 1)
        try:
            cell.value = value
        except IllegalCharacterError as e:
            raise CellWriteError(f"Text contains characters not allowed in worksheets: {value!r}") from e
        self._written.add(location)
        if isinstance(value, str):
            # Keep text such as "=SUM(...)" literal instead of turning it into a formula
            cell.data_type = TYPE_STRING

    def __len__(self) -> int:
        return len(self._written)

    def __contains__(self, location: CellLocation) -> bool:
        return location in self._written

    def value_at(self, location: CellLocation) -> Any:
        return self.worksheet.cell(row=location.row + 1, column=location.column + 1).value

    def save(self) -> Path:
        try:
            self.workbook.save(self.path)
        except OSError as e:
            raise OutputPathError(f"Cannot save destination workbook {self.path}: {e}") from e
        logger.info(f"💾 Saved {len(self._written)} cells to {self.path}")
        return self.path
