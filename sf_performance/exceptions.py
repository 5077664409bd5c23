"""Exceptions raised by the ingestion and metrics engine."""

from typing import Iterable


class SalesPerformanceError(Exception):
    """Base exception for the sales-performance service."""

    pass


class ValidationError(SalesPerformanceError):
    """Uploaded data cannot be accepted (missing columns, bad file, no file)."""

    def __init__(self, message: str, missing_columns: Iterable[str] = ()):
        self.message = message
        self.missing_columns = list(missing_columns)
        super().__init__(message)


class ConflictError(SalesPerformanceError):
    """An order id already exists in the store."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order already exists: {order_id}")


class ComputationError(SalesPerformanceError):
    """An order date could not be interpreted while computing metrics."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Cannot interpret order date: {value!r}")


class StoreError(SalesPerformanceError):
    """The persisted order store could not be read or written."""

    def __init__(self, operation: str, original_error: Exception):
        self.operation = operation
        self.original_error = original_error
        super().__init__(f"Order store {operation} failed: {original_error}")
