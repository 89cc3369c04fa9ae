from typing import Generic, TypeVar, Optional, Callable, Dict, Union
from http import HTTPStatus

T = TypeVar('T')
U = TypeVar('U')


class Result(Generic[T]):
    """
    Outcome of one step of workbook processing.

    The steps (validate the upload, read the sheets, map the records) each
    return a Result; the upload endpoint turns a failed one into a JSON
    error response with the carried status code.

    Attributes:
        success (bool): Whether the step succeeded
        data (Optional[T]): Step output, set on success
        error (Optional[str]): Message sent back to the client, set on failure
        status_code (HTTPStatus): Status of the HTTP response for this outcome
    """
    def __init__(
        self,
        success: bool,
        data: Optional[T] = None,
        error: Optional[str] = None,
        status_code: Optional[Union[int, HTTPStatus]] = None
    ):
        self.success = success
        self.data = data
        self.error = error

        if status_code is None:
            self.status_code = HTTPStatus.OK if success else HTTPStatus.BAD_REQUEST
        else:
            self.status_code = HTTPStatus(status_code)

    @classmethod
    def ok(cls, data: T, status_code: Optional[Union[int, HTTPStatus]] = HTTPStatus.OK) -> "Result[T]":
        return cls(success=True, data=data, status_code=status_code)

    @classmethod
    def fail(cls, error: str, status_code: Optional[Union[int, HTTPStatus]] = HTTPStatus.BAD_REQUEST) -> "Result[T]":
        return cls(success=False, error=error, status_code=status_code)

    @classmethod
    def not_found(cls, error: str = "Uploaded file not found") -> "Result[T]":
        """The stored upload is missing on disk (404)."""
        return cls.fail(error, HTTPStatus.NOT_FOUND)

    @classmethod
    def unreadable_workbook(cls, error: str = "File could not be read as a spreadsheet") -> "Result[T]":
        """The upload is not an Excel workbook pandas can open (400)."""
        return cls.fail(error, HTTPStatus.BAD_REQUEST)

    @classmethod
    def invalid_input(cls, error: str = "Invalid upload parameters") -> "Result[T]":
        """
        Bad form parameters: no file, a negative header row index or an
        unknown document type (400).
        """
        return cls.fail(error, HTTPStatus.BAD_REQUEST)

    @classmethod
    def server_error(cls, error: str = "Internal server error") -> "Result[T]":
        """Unexpected failure while mapping the workbook (500)."""
        return cls.fail(error, HTTPStatus.INTERNAL_SERVER_ERROR)

    def is_success(self) -> bool:
        return self.success

    def is_failure(self) -> bool:
        return not self.success

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        """
        Run the next processing step on the output of this one.

        A failure is passed along unchanged so the first failing step
        decides the response.
        """
        if self.is_failure():
            return Result.fail(self.error or "", status_code=self.status_code)
        return fn(self.data)  # type: ignore

    def on_failure(self, fn: Callable[[str], None]) -> "Result[T]":
        if self.is_failure():
            fn(self.error or "")
        return self

    def error_body(self) -> Dict[str, Optional[str]]:
        """JSON body of the error response, ``{"error": message}``."""
        return {"error": self.error}
