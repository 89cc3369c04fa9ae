"""
Excel Column Mapper Application

This package provides an API that turns uploaded spreadsheets into JSON
records. Every sheet is tabularized using a header row and the resulting
records are renamed, parsed and derived according to a field table.

Key modules:
- main.py: FastAPI application with the upload endpoint
- excel_file_process.py: Workbook reading and processing pipeline
- tabularizer.py: Sheet grids to keyed records
- column_mapper.py: Field specifications and record mapping
- field_tables.py: Field tables per document type
- config.py: Settings loaded from the environment
- utils/result.py: Result pattern implementation for error handling
"""
