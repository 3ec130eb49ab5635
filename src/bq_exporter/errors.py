"""Exception hierarchy for export and load operations.

Every failure raised by the core derives from ExporterError. Each class
carries the HTTP status code the API layer answers with, so the request
layer never has to inspect messages to decide between a client and a
server error.
"""

from typing import Optional


class ExporterError(Exception):
    """Base exception for export and load errors.

    Attributes:
        message: Human-readable error description
        status_code: HTTP status code used when the error reaches the API
    """

    status_code: int = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class QueryExecutionError(ExporterError):
    """The warehouse rejected the query or failed while running it."""

    pass


class SchemaUnavailableError(ExporterError):
    """The query result has no usable column list: empty after a peek, or with duplicate names."""

    status_code = 422

    def __init__(self, message: str = 'empty BigQuery schema'):
        super().__init__(message)


class UnsupportedTypeError(ExporterError):
    """A source field is repeated or nested and cannot become a flat column.

    Attributes:
        field_name: Name of the offending field
    """

    status_code = 400

    def __init__(self, field_name: str, message: Optional[str] = None):
        self.field_name = field_name
        super().__init__(message or f'unsupported complex type for column {field_name!r}')


class ConfigurationError(ExporterError):
    """Destination or service settings cannot be resolved."""

    status_code = 400


class DatabaseError(ExporterError):
    """A DDL or DML statement failed against the destination."""

    pass


class ValueConversionError(ExporterError):
    """A row value cannot be represented in its destination column (strict mode).

    Attributes:
        field_name: Column whose value failed to convert
    """

    def __init__(self, field_name: str, value: object, column_type: str):
        self.field_name = field_name
        super().__init__(
            f'value of type {type(value).__name__} for column {field_name!r} cannot be stored as {column_type}'
        )


class LoadCancelledError(ExporterError):
    """The operation was cancelled or ran past its deadline."""

    status_code = 504

    def __init__(self, message: str = 'operation cancelled'):
        super().__init__(message)
