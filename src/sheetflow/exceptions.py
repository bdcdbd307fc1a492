from enum import Enum
from typing import Any, Optional


class ExceptionType(str, Enum):
    CONFIGURATION = "CONFIGURATION"
    VALIDATION = "VALIDATION"
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"


class DataProcessorException(Exception):
    """
    Base exception for every error raised by sheetflow itself.
    """

    message: str = "A data processor error occurred."
    category: ExceptionType = ExceptionType.SYSTEM

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def __str__(self):
        return self.message

    def to_dict(self):
        return {
            "message": self.message,
            "category": self.category.value,
            "type": self.__class__.__name__,
        }


class ConfigurationException(DataProcessorException):
    """
    Exception raised for invalid setup: unsupported formats, bad chunk sizes,
    missing dispatchers. Always fatal.
    """

    message: str = "Invalid data processor configuration."
    category: ExceptionType = ExceptionType.CONFIGURATION


class UnsupportedFormatException(ConfigurationException):
    """
    Exception raised when a file format token has no registered codec.
    """

    def __init__(self, fmt: str, operation: str | None = None):
        self.format = fmt
        self.operation = operation
        suffix = f" for {operation}" if operation else ""
        super().__init__(f"Unsupported format{suffix}: '{fmt}'")


class RowValidationException(DataProcessorException):
    """
    Exception raised when a mapped record fails the contract's validation rules.
    Routed through the error policy like any other row error.
    """

    message: str = "Row validation failed."
    category: ExceptionType = ExceptionType.VALIDATION

    def __init__(self, row_number: int, errors: Optional[list] = None, message: str | None = None):
        self.row_number = row_number
        self.errors = errors or []
        super().__init__(message or f"Validation error on row {row_number}: {self.errors}")

    def to_dict(self):
        return {
            **super().to_dict(),
            "row_number": self.row_number,
            "errors": self.errors,
        }


class ErrorBudgetExceededException(DataProcessorException):
    """
    Exception raised when the running error count exceeds the contract's max_errors.
    Distinct from the row error that triggered it, which is kept as `cause`.
    """

    message: str = "Maximum number of errors reached."
    category: ExceptionType = ExceptionType.BUSINESS

    def __init__(self, max_errors: int, error_count: int, cause: BaseException | None = None):
        self.max_errors = max_errors
        self.error_count = error_count
        self.cause = cause
        super().__init__(f"Maximum number of errors reached: {max_errors} (errors={error_count})")

    def to_dict(self):
        return {
            **super().to_dict(),
            "max_errors": self.max_errors,
            "error_count": self.error_count,
            "cause": repr(self.cause) if self.cause else None,
        }


class ProcessingException(DataProcessorException):
    """
    Exception raised when an import or export run fails.
    Wraps whatever escaped the run; the original error is kept as `cause`.
    """

    message: str = "Error during processing."
    category: ExceptionType = ExceptionType.SYSTEM

    def __init__(self, message: str | None = None, cause: BaseException | None = None):
        self.cause = cause
        if message is None and cause is not None:
            message = f"Error during processing: {cause}"
        super().__init__(message)

    @property
    def budget_exceeded(self) -> bool:
        return isinstance(self.cause, ErrorBudgetExceededException)

    def to_dict(self) -> dict[str, Any]:
        cause = self.cause
        return {
            **super().to_dict(),
            "cause": cause.to_dict() if isinstance(cause, DataProcessorException) else repr(cause),
        }
