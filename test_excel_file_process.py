import pytest
import pandas as pd
from http import HTTPStatus
from unittest.mock import patch

import excel_file_process
from excel_file_process import (
    FileRequest,
    LogContext,
    ProcessResponse,
    WorkbookProcessor,
    count_records,
    read_workbook,
)


@pytest.fixture
def price_workbook(make_workbook):
    """
    Fixture providing a price list workbook with two sheets.

    The sheets name their columns differently and one row has no valid price.

    Returns:
        str: Path to the workbook
    """
    return make_workbook("prices.xlsx", {
        "Algemeen": [
            ["Algemene prijzen", "tarief per:", "verkoop prijs Excl."],
            ["Dakgoot", "m1", "€ 100,00"],
            ["Voorrijkosten", "stuk", "op aanvraag"],
        ],
        "Materiaal": [
            ["Materiaal", "Eenheid", "verkoop prijs"],
            ["Kraan", "stuk", "€ 1.250,00"],
        ],
    })


class TestReadWorkbook:
    """
    Tests for the read_workbook function.
    """

    def test_reads_every_sheet_as_text_grid(self, price_workbook):
        sheets = read_workbook(price_workbook)

        assert list(sheets) == ["Algemeen", "Materiaal"]
        assert sheets["Algemeen"][0] == ["Algemene prijzen", "tarief per:", "verkoop prijs Excl."]
        assert sheets["Materiaal"][1] == ["Kraan", "stuk", "€ 1.250,00"]

    def test_numbers_are_read_as_strings(self, make_workbook):
        path = make_workbook("numbers.xlsx", {"Sheet1": [["Price"], [12]]})

        assert read_workbook(path) == {"Sheet1": [["Price"], ["12"]]}

    def test_empty_cells_become_none_and_trailing_ones_are_dropped(self):
        """
        Test the conversion of empty cells.

        Empty cells inside a row become None, empty cells at the end of a
        row are dropped. Sheet names are trimmed.
        """
        frame = pd.DataFrame([["Name", "Unit", "Price"], ["Widget", None, "10"], ["Gadget", None, None]])

        with patch('pandas.read_excel', return_value={" Prijzen ": frame}):
            sheets = read_workbook("workbook.xlsx")

        assert sheets == {
            "Prijzen": [
                ["Name", "Unit", "Price"],
                ["Widget", None, "10"],
                ["Gadget"],
            ]
        }


class TestLogContext:
    """
    Tests for the LogContext timing context manager.
    """

    def test_logs_start_and_completion(self):
        with patch.object(excel_file_process.logger, 'info') as info:
            with LogContext("unit of work", request_id="abc"):
                pass

        messages = [call.args[0] for call in info.call_args_list]
        assert messages[0] == "Starting unit of work"
        assert messages[1].startswith("Completed unit of work")

    def test_logs_failure_and_reraises(self):
        with patch.object(excel_file_process.logger, 'error') as error, \
             patch.object(excel_file_process.logger, 'info'):
            with pytest.raises(RuntimeError):
                with LogContext("unit of work"):
                    raise RuntimeError("boom")

        assert "boom" in error.call_args.args[0]


class TestWorkbookProcessor:
    """
    Tests for WorkbookProcessor.process_file.
    """

    def test_flat_processing_of_price_list(self, price_workbook):
        """
        Test mapping a real workbook into one flat list.

        The row with an unparseable price is dropped.

        Args:
            price_workbook: Fixture providing a price list workbook
        """
        result = WorkbookProcessor.process_file(FileRequest(file_path=price_workbook))

        assert result.is_success()
        response = result.data
        assert isinstance(response, ProcessResponse)
        assert response.sheet_names == ["Algemeen", "Materiaal"]
        assert response.total_rows == 2
        assert [row["description"] for row in response.records] == ["Dakgoot", "Kraan"]
        assert response.records[0]["retailPriceEx"] == pytest.approx(100.0)
        assert response.records[1]["totalPrice"] == pytest.approx(1512.5)

    def test_grouped_processing_keeps_sheets(self, price_workbook):
        result = WorkbookProcessor.process_file(FileRequest(file_path=price_workbook, group_by_sheet=True))

        assert result.is_success()
        records = result.data.records
        assert list(records) == ["Algemeen", "Materiaal"]
        assert len(records["Algemeen"]) == 1
        assert len(records["Materiaal"]) == 1

    def test_header_row_index_is_applied(self, make_workbook):
        path = make_workbook("addresses.xlsx", {
            "Klanten": [
                ["Klantenlijst"],
                ["Naam", "Straat", "Plaats"],
                ["Jansen", "Dorpsstraat 4", "Zwolle"],
            ],
        })

        result = WorkbookProcessor.process_file(
            FileRequest(file_path=path, header_row_index=1, document_type="addresses")
        )

        assert result.data.records == [{
            "name": "Jansen",
            "street": "Dorpsstraat",
            "houseNumber": "4",
            "city": "Zwolle",
            "country": "NL",
        }]

    @pytest.mark.parametrize(
        "file_path, expected_status",
        [
            (None, HTTPStatus.BAD_REQUEST),
            ("", HTTPStatus.BAD_REQUEST),
            ("missing/workbook.xlsx", HTTPStatus.NOT_FOUND),
        ],
        ids=["none-path", "empty-path", "missing-file"]
    )
    def test_file_validation_failures(self, file_path, expected_status):
        """
        Test that missing files are reported without reading anything.

        Args:
            file_path: Path passed in the request
            expected_status: Expected HTTP status of the failure
        """
        with patch.object(excel_file_process, 'read_workbook') as reader:
            result = WorkbookProcessor.process_file(FileRequest(file_path=file_path))

        assert result.is_failure()
        assert result.status_code == expected_status
        reader.assert_not_called()

    def test_unreadable_workbook_is_bad_request(self, tmp_path):
        path = tmp_path / "notes.xlsx"
        path.write_text("this is not a spreadsheet")

        result = WorkbookProcessor.process_file(FileRequest(file_path=str(path)))

        assert result.is_failure()
        assert result.status_code == HTTPStatus.BAD_REQUEST
        assert result.error.startswith("Failed to read workbook")

    def test_unknown_document_type_is_bad_request(self, price_workbook):
        result = WorkbookProcessor.process_file(FileRequest(file_path=price_workbook, document_type="invoices"))

        assert result.status_code == HTTPStatus.BAD_REQUEST
        assert "invoices" in result.error

    def test_negative_header_row_is_bad_request(self, price_workbook):
        result = WorkbookProcessor.process_file(FileRequest(file_path=price_workbook, header_row_index=-1))

        assert result.status_code == HTTPStatus.BAD_REQUEST
        assert "headerRowIndex" in result.error

    def test_unexpected_error_is_server_error(self, price_workbook):
        with patch.object(excel_file_process, 'tabularize', side_effect=RuntimeError("Test error")), \
             patch.object(excel_file_process.logger, 'exception') as log_exception:
            result = WorkbookProcessor.process_file(FileRequest(file_path=price_workbook))

        assert result.status_code == HTTPStatus.INTERNAL_SERVER_ERROR
        assert "Test error" in result.error
        log_exception.assert_called_once()


@pytest.mark.parametrize(
    "records, expected",
    [
        ([], 0),
        ([{"a": 1}, {"a": 2}], 2),
        ({"One": [{"a": 1}], "Two": []}, 1),
    ],
    ids=["empty-list", "flat", "grouped"]
)
def test_count_records(records, expected):
    assert count_records(records) == expected
