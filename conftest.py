"""
Pytest configuration file.

This file is automatically loaded by pytest and provides global test configuration.
It ensures the project's source directory is added to the Python path so that
modules can be imported properly during test execution, and provides a
fixture for writing small workbooks to disk.
"""
import os
import sys

import pandas as pd
import pytest

# Add the current directory to the Python path
# This ensures imports work correctly when running tests
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))


@pytest.fixture
def make_workbook(tmp_path):
    """
    Fixture providing a function that writes sheet grids to an .xlsx file.

    Rows are written as-is, without header or index; shorter rows leave
    their trailing cells empty.

    Returns:
        Callable[[str, dict], str]: Takes a file name and sheet name to rows, returns the file path
    """
    def write(file_name, sheets):
        path = tmp_path / file_name
        with pd.ExcelWriter(path, engine="openpyxl") as writer:
            for sheet_name, rows in sheets.items():
                pd.DataFrame(rows).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
        return str(path)

    return write
