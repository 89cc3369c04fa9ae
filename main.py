from fastapi import FastAPI, File, Form, UploadFile
import os
import json
import shutil
import uuid
import logging
from datetime import datetime
from typing import Optional
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from config import get_settings
from excel_file_process import FileRequest, WorkbookProcessor
from field_tables import FIELD_TABLES

settings = get_settings()

# Create logs directory if it doesn't exist
os.makedirs(settings.log_dir, exist_ok=True)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Add file handler to write logs to file
log_file_path = os.path.join(settings.log_dir, f"app_{datetime.now().strftime('%Y%m%d')}.log")
file_handler = logging.FileHandler(log_file_path)
file_handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
logging.getLogger().addHandler(file_handler)


# Initialize FastAPI app with metadata
app = FastAPI(
    title="Excel Column Mapper API",
    description="API for mapping uploaded spreadsheets into JSON records",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def save_upload(file: UploadFile, upload_dir: str) -> str:
    """
    Store an uploaded file under a unique name in the upload directory.

    Args:
        file: The uploaded file
        upload_dir: Directory for temporary uploads

    Returns:
        str: Path of the stored file
    """
    os.makedirs(upload_dir, exist_ok=True)
    _, extension = os.path.splitext(file.filename or "")
    file_path = os.path.join(upload_dir, f"{uuid.uuid4().hex}{extension}")
    with open(file_path, "wb") as target:
        shutil.copyfileobj(file.file, target)
    logger.info(f"Stored upload {file.filename} at {file_path}")
    return file_path


def remove_upload(file_path: str) -> None:
    """Delete a temporary upload, logging instead of failing if it is already gone."""
    try:
        os.remove(file_path)
    except OSError as e:
        logger.warning(f"Could not remove upload {file_path}: {str(e)}")


def write_output(records, output_path: str) -> bool:
    """
    Persist mapped records as JSON.

    Returns:
        bool: True if the file was written
    """
    try:
        with open(output_path, "w", encoding="utf-8") as output_file:
            json.dump(records, output_file, ensure_ascii=False)
        return True
    except OSError as e:
        logger.error(f"Failed to write output to {output_path}: {str(e)}")
        return False


# API Endpoints
@app.post(
    "/upload",
    tags=["Workbook Mapping"]
)
def upload_workbook(
    file: Optional[UploadFile] = File(None),
    group_by_sheet: str = Form("false", alias="groupBySheet"),
    header_row_index: Optional[int] = Form(None, alias="headerRowIndex"),
    document_type: Optional[str] = Form(None, alias="documentType"),
):
    """
    Map an uploaded workbook into JSON records.

    Every sheet is tabularized with the given header row and mapped through
    the field table of the document type. The mapped records are returned
    and also written to the configured output file; the upload itself is
    deleted afterwards. Runs in the threadpool since reading and writing
    the files blocks.

    Form fields:
        - file: The .xlsx or .xls workbook
        - groupBySheet: "true" to group records per sheet
        - headerRowIndex: Row holding the column names (default from settings)
        - documentType: Field table to use (default from settings)

    Returns:
        A list of records, or an object of sheet name to list of records when grouped
    """
    if file is None or not file.filename:
        logger.warning("Upload request without a file")
        return JSONResponse(status_code=400, content={"error": "No file uploaded."})

    request_kwargs = {
        "group_by_sheet": group_by_sheet == "true",
        "header_row_index": settings.default_header_row_index if header_row_index is None else header_row_index,
        "document_type": document_type or settings.default_document_type,
    }
    logger.info(f"Received upload {file.filename}", extra=request_kwargs)

    file_path = save_upload(file, settings.upload_dir)
    try:
        result = WorkbookProcessor.process_file(FileRequest(file_path=file_path, **request_kwargs))
    finally:
        remove_upload(file_path)

    if result.is_failure():
        return JSONResponse(status_code=result.status_code.value, content=result.error_body())

    records = result.data.records
    write_output(records, settings.output_path)
    return records


@app.get(
    "/document-types",
    tags=["Workbook Mapping"]
)
async def list_document_types():
    """List the document types accepted by the upload endpoint."""
    return {"document_types": list(FIELD_TABLES)}


# Serve the upload form when a static directory is present
if os.path.isdir(settings.static_dir):
    app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")


# Run the application if executed directly
if __name__ == "__main__":
    import uvicorn
    logger.info("Starting Excel Column Mapper API in development mode.")
    uvicorn.run("main:app", host=settings.host, port=settings.port, reload=True)
