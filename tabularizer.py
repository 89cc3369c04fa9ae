import logging
from typing import Dict, List, Mapping, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Cell = Optional[str]
Grid = Sequence[Sequence[Cell]]
Record = Dict[str, Union[str, float, int, None]]


def header_keys(header_row: Sequence[Cell]) -> List[str]:
    """
    Turn a header row into record keys.

    Every cell is trimmed; an absent header cell becomes the empty-string key.
    """
    return ["" if cell is None else str(cell).strip() for cell in header_row]


def grid_to_records(grid: Grid, header_row_index: int = 0) -> List[Record]:
    """
    Convert one sheet grid into records keyed by its header row.

    Rows before the header row are skipped. Each later row is zipped with
    the header keys by position; a cell past the end of a short row yields
    None. Duplicate keys are not deduplicated, the last column wins.

    Args:
        grid: Rows of cells for a single sheet
        header_row_index: Index of the row holding the column names

    Returns:
        List[Record]: One record per data row, in grid order
    """
    if header_row_index < 0:
        raise ValueError(f"header_row_index must be >= 0, got {header_row_index}")

    if len(grid) <= header_row_index:
        return []

    keys = header_keys(grid[header_row_index])
    records = []
    for row in grid[header_row_index + 1:]:
        record: Record = {}
        for position, key in enumerate(keys):
            record[key] = row[position] if position < len(row) else None
        records.append(record)
    return records


def tabularize(
    sheets: Mapping[str, Grid],
    header_row_index: int = 0,
    group_by_sheet: bool = False,
) -> Union[Dict[str, List[Record]], List[Record]]:
    """
    Materialize every sheet of a workbook into keyed records.

    Args:
        sheets: Sheet name to grid of cells, in workbook order
        header_row_index: Index of the header row, applied to every sheet
        group_by_sheet: Keep records grouped per sheet instead of one flat list

    Returns:
        Union[Dict[str, List[Record]], List[Record]]: Records per sheet when
            grouping, otherwise all records concatenated in sheet order
    """
    by_sheet = {
        sheet_name: grid_to_records(grid, header_row_index)
        for sheet_name, grid in sheets.items()
    }
    logger.debug(
        f"Tabularized {len(by_sheet)} sheets",
        extra={"row_counts": {name: len(rows) for name, rows in by_sheet.items()}}
    )

    if group_by_sheet:
        return by_sheet

    flat: List[Record] = []
    for records in by_sheet.values():
        flat.extend(records)
    return flat
