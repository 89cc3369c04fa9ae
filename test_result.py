from http import HTTPStatus

from utils.result import Result


class TestResult:
    """
    Tests for the Result carried between processing steps.
    """

    def test_and_then_runs_next_step_on_success(self):
        result = Result.ok("prices.xlsx").and_then(lambda path: Result.ok(path.upper()))

        assert result.is_success()
        assert result.data == "PRICES.XLSX"

    def test_and_then_passes_first_failure_along(self):
        calls = []

        result = (
            Result.not_found("File does not exist at path: gone.xlsx")
            .and_then(lambda path: calls.append(path) or Result.ok(path))
        )

        assert calls == []
        assert result.status_code == HTTPStatus.NOT_FOUND
        assert result.error_body() == {"error": "File does not exist at path: gone.xlsx"}

    def test_on_failure_only_runs_for_failures(self):
        errors = []

        Result.ok([]).on_failure(errors.append)
        Result.server_error("Processing error: boom").on_failure(errors.append)

        assert errors == ["Processing error: boom"]

    def test_status_codes_of_constructors(self):
        assert Result.unreadable_workbook().status_code == HTTPStatus.BAD_REQUEST
        assert Result.invalid_input().status_code == HTTPStatus.BAD_REQUEST
        assert Result.server_error().status_code == HTTPStatus.INTERNAL_SERVER_ERROR
        assert Result(success=False, status_code=422).status_code == HTTPStatus.UNPROCESSABLE_ENTITY
