"""Exceptions for record storage startup failures.

Data-plane failures are reported through ``StorageResult``; only errors that
should abort startup are raised.
"""


class StorageError(Exception):
    """Base exception for record storage errors."""

    pass


class TableCreationError(StorageError):
    """Raised when a table cannot be created and does not already exist."""

    def __init__(self, table_name: str, reason: str):
        super().__init__(f"Unable to create table {table_name}: {reason}")
        self.table_name = table_name
        self.reason = reason


class TableActivationTimeout(StorageError):
    """Raised when a table does not become ACTIVE before the deadline."""

    def __init__(self, table_name: str, timeout: float, last_status: str):
        super().__init__(
            f"Table {table_name} not ACTIVE after {timeout}s (last status: {last_status})"
        )
        self.table_name = table_name
        self.timeout = timeout
        self.last_status = last_status
