import os
import pandas as pd
import logging
import time
import uuid
from typing import Dict, List, Optional, Union, Any
from http import HTTPStatus
from pydantic import BaseModel

from utils.result import Result
from tabularizer import tabularize
from column_mapper import map_columns
from field_tables import get_field_table

# Configure logger with more structured format
logger = logging.getLogger(__name__)

Grid = List[List[Optional[str]]]
MappedRecords = Union[Dict[str, List[Dict[str, Any]]], List[Dict[str, Any]]]

class LogContext:
    """Context manager for tracking and logging operation metrics"""
    def __init__(self, operation_name: str, **kwargs):
        self.operation_name = operation_name
        self.start_time = None
        self.request_id = kwargs.get('request_id', str(uuid.uuid4())[:8])
        self.extra = kwargs

    def __enter__(self):
        self.start_time = time.time()
        logger.info(f"Starting {self.operation_name}", extra={**self.extra, "request_id": self.request_id})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        duration = time.time() - self.start_time
        if (exc_type):
            logger.error(
                f"Failed {self.operation_name} in {duration:.2f}s: {str(exc_val)}",
                extra={**self.extra, "request_id": self.request_id, "duration": duration},
                exc_info=(exc_type, exc_val, exc_tb)
            )
        else:
            logger.info(
                f"Completed {self.operation_name} in {duration:.2f}s",
                extra={**self.extra, "request_id": self.request_id, "duration": duration}
            )

# Response model for mapped workbook data
class ProcessResponse(BaseModel):
    """
    Result of mapping an uploaded workbook.

    Attributes:
        records: Mapped records, a flat list or a list per sheet
        sheet_names: Sheet names in workbook order (trimmed)
        total_rows: Number of mapped records across all sheets
        document_type: Field table the records were mapped with
        group_by_sheet: Whether ``records`` is grouped per sheet
    """
    records: Union[Dict[str, List[Dict[str, Any]]], List[Dict[str, Any]]]
    sheet_names: List[str]
    total_rows: int
    document_type: str
    group_by_sheet: bool = False

# Input schema for a processing run
class FileRequest(BaseModel):
    """
    Schema for a workbook processing request.

    Attributes:
        file_path: Path to the uploaded workbook
        header_row_index: Row holding the column names, applied to every sheet
        group_by_sheet: Keep mapped records grouped per sheet
        document_type: Name of the field table to map with
    """
    file_path: Optional[str] = None
    header_row_index: int = 0
    group_by_sheet: bool = False
    document_type: str = "price_list"


def _strip_trailing_empty(row: List[Optional[str]]) -> List[Optional[str]]:
    end = len(row)
    while end and row[end - 1] is None:
        end -= 1
    return row[:end]


def read_workbook(file_path: str) -> Dict[str, Grid]:
    """
    Read every sheet of a workbook into a grid of cell strings.

    Cells are read as text; empty cells become None and are dropped from the
    end of each row. Sheet names are trimmed.

    Args:
        file_path: Path to an .xlsx or .xls workbook

    Returns:
        Dict[str, Grid]: Sheet name to rows of cells, in workbook order
    """
    frames = pd.read_excel(file_path, sheet_name=None, header=None, dtype=str)
    sheets: Dict[str, Grid] = {}
    for sheet_name, df in frames.items():
        rows = [
            _strip_trailing_empty([None if pd.isna(cell) else cell for cell in row])
            for row in df.itertuples(index=False, name=None)
        ]
        sheets[str(sheet_name).strip()] = rows
    return sheets


def count_records(records: MappedRecords) -> int:
    if isinstance(records, dict):
        return sum(len(rows) for rows in records.values())
    return len(records)


# Workbook processor with Result based error handling
class WorkbookProcessor:
    """
    Handles reading an uploaded workbook and mapping its records.

    The pipeline is:
    - Validate the uploaded file exists
    - Read every sheet into a grid of cell strings
    - Tabularize the grids and map them through the document type's field table
    """

    @staticmethod
    def process_file(request: FileRequest) -> Result[ProcessResponse]:
        """
        Process an uploaded workbook according to the request.

        Args:
            request: FileRequest with file path, header row, grouping and document type

        Returns:
            Result[ProcessResponse]: Result object containing either the mapped records or an error
        """
        request_id = str(uuid.uuid4())[:8]
        log_context = {
            "request_id": request_id,
            "file_path": request.file_path,
            "document_type": request.document_type,
            "header_row_index": request.header_row_index,
            "group_by_sheet": request.group_by_sheet,
        }

        logger.info("Processing workbook", extra=log_context)

        try:
            with LogContext("workbook processing", **log_context):
                result = (
                    WorkbookProcessor._validate_file(request.file_path)
                    .and_then(WorkbookProcessor._read_sheets)
                    .and_then(lambda sheets: WorkbookProcessor._process_data(sheets, request))
                )

            result.on_failure(
                lambda error: logger.warning(f"Workbook processing failed: {error}", extra=log_context)
            )
            if result.is_success():
                logger.info(
                    f"Successfully mapped {result.data.total_rows} rows",
                    extra=log_context
                )
            return result

        except Exception as e:
            logger.exception("Unexpected error during workbook processing", extra={**log_context, "error": str(e)})
            return Result.server_error(f"Processing error: {str(e)}")

    @staticmethod
    def _validate_file(file_path: Optional[str]) -> Result[str]:
        """
        Validates that the uploaded file exists.

        Args:
            file_path: Path to the uploaded workbook

        Returns:
            Result containing the file path or an error message
        """
        if not file_path:
            logger.error("File path is empty")
            return Result.invalid_input("No file uploaded.")

        if not os.path.exists(file_path):
            logger.error("File not found", extra={"file_path": file_path})
            return Result.not_found(f"File does not exist at path: {file_path}")

        return Result.ok(file_path)

    @staticmethod
    def _read_sheets(file_path: str) -> Result[Dict[str, Grid]]:
        """
        Reads every sheet of the workbook.

        Args:
            file_path: Path to the uploaded workbook

        Returns:
            Result containing sheet grids or an error message
        """
        try:
            logger.debug("Attempting to read workbook", extra={"file_path": file_path})
            start_time = time.time()
            sheets = read_workbook(file_path)
            read_time = time.time() - start_time
            logger.info(
                "Successfully read workbook",
                extra={
                    "file_path": file_path,
                    "sheet_count": len(sheets),
                    "read_time_seconds": f"{read_time:.2f}"
                }
            )
            return Result.ok(sheets)
        except Exception as e:
            logger.error(
                "Failed to read workbook",
                extra={
                    "file_path": file_path,
                    "error": str(e),
                    "error_type": type(e).__name__
                }
            )
            return Result.unreadable_workbook(f"Failed to read workbook: {str(e)}")

    @staticmethod
    def _process_data(sheets: Dict[str, Grid], request: FileRequest) -> Result[ProcessResponse]:
        """
        Tabularize the sheet grids and map them through the field table.

        Args:
            sheets: Sheet name to grid of cells
            request: The processing request

        Returns:
            Result containing ProcessResponse with mapped records
        """
        if request.header_row_index < 0:
            return Result.invalid_input(f"headerRowIndex must be >= 0, got {request.header_row_index}")

        try:
            fields = get_field_table(request.document_type)
        except KeyError as e:
            logger.warning("Unknown document type", extra={"document_type": request.document_type})
            return Result.invalid_input(str(e.args[0]))

        start_time = time.time()
        records = tabularize(sheets, request.header_row_index, request.group_by_sheet)
        mapped = map_columns(records, fields)
        processing_time = time.time() - start_time

        total_rows = count_records(mapped)
        logger.info(
            "Successfully mapped workbook",
            extra={
                "sheet_count": len(sheets),
                "mapped_rows": total_rows,
                "processing_time_seconds": f"{processing_time:.2f}"
            }
        )

        response = ProcessResponse(
            records=mapped,
            sheet_names=list(sheets),
            total_rows=total_rows,
            document_type=request.document_type,
            group_by_sheet=request.group_by_sheet,
        )
        return Result.ok(response, status_code=HTTPStatus.OK)
