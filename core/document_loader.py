"""
Source document loader - reads one worksheet of an .xlsx workbook into a grid
"""
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, List, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .exceptions import MissingSheetError, SourceDocumentError
from .registry import CellLocation

logger = logging.getLogger(__name__)


@dataclass
class SourceGrid:
    """Used range of a worksheet.

    ``first_row``/``first_column`` are 0-based absolute coordinates of the
    top-left cell; ``rows`` holds raw cell values (None for empty cells).
    """
    sheet_name: str
    first_row: int = 0
    first_column: int = 0
    rows: List[Tuple[Any, ...]] = field(default_factory=list)

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return max((len(row) for row in self.rows), default=0)

    @property
    def size(self) -> int:
        return self.width * self.height

    @property
    def header_row(self) -> int:
        return self.first_row

    def cells(self) -> Iterator[Tuple[CellLocation, Any]]:
        """Every cell of the used range in row-major order."""
        width = self.width
        for r, row in enumerate(self.rows):
            for c in range(width):
                value = row[c] if c < len(row) else None
                yield CellLocation(self.first_row + r, self.first_column + c), value


def _used_range(rows: List[Tuple[Any, ...]]) -> Tuple[int, int, List[Tuple[Any, ...]]]:
    """Trim empty rows and columns around the values.

    Returns the 0-based origin of the remaining block and its rows.
    """
    filled = [i for i, row in enumerate(rows) if any(value is not None for value in row)]
    if not filled:
        return 0, 0, []

    top, bottom = filled[0], filled[-1]
    columns = [
        c
        for row in rows[top:bottom + 1]
        for c, value in enumerate(row)
        if value is not None
    ]
    left, right = min(columns), max(columns)
    return top, left, [tuple(row[left:right + 1]) for row in rows[top:bottom + 1]]


def load_source_grid(path: Path, sheet_name: str = "Worksheet") -> SourceGrid:
    """Read the used range of ``sheet_name`` from the workbook at ``path``."""
    path = Path(path)
    try:
        workbook = load_workbook(path, read_only=True, data_only=True)
    except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as e:
        raise SourceDocumentError(f"Cannot open source workbook {path}: {e}") from e

    try:
        if sheet_name not in workbook.sheetnames:
            raise MissingSheetError(sheet_name, workbook.sheetnames)

        worksheet = workbook[sheet_name]
        # The stored <dimension> can be stale (e.g. "A1"); read every row instead
        worksheet.reset_dimensions()
        rows = [tuple(row) for row in worksheet.iter_rows(min_row=1, min_col=1, values_only=True)]
    finally:
        workbook.close()

    first_row, first_column, rows = _used_range(rows)
    grid = SourceGrid(
        sheet_name=sheet_name,
        first_row=first_row,
        first_column=first_column,
        rows=rows,
    )
    logger.info(f"📄 Loaded sheet '{sheet_name}' from {path}: {grid.height} rows × {grid.width} columns")
    return grid
