"""
Record Storage module for the movie record store.

This module provides typed record operations over a single named table.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Union

from .exceptions import StorageError, TableCreationError, TableActivationTimeout
from .records import Record, OperationStatus, StorageResult, TableHandle

class RecordStorage(ABC):
    """Abstract base class for record storage implementations.

    This class defines the interface for record stores that can ensure a
    table, write, update, delete and read records by primary key. Data-plane
    operations return a StorageResult instead of raising.
    """

    @abstractmethod
    def ensure_table(
        self,
        name: str,
        key_schema: Optional[List[Tuple[str, str]]] = None,
        throughput: Optional[Tuple[int, int]] = None
    ) -> TableHandle:
        """Ensure a table exists and is active.

        Args:
            name: Name of the table.
            key_schema: (attribute_name, attribute_type) pairs, partition key first.
            throughput: (read_units, write_units) capacity hint.

        Returns:
            TableHandle: Handle to the new or already existing table.

        Raises:
            TableCreationError: If the table cannot be created for any reason
                other than already existing.
            TableActivationTimeout: If the table does not become active in time.
        """
        pass

    @abstractmethod
    def configure_expiry(
        self,
        handle: TableHandle,
        attribute_name: str = "ttl",
        enabled: bool = True
    ) -> StorageResult:
        """Enable or disable time-to-live on an attribute. Never raises.

        Args:
            handle: Table to configure.
            attribute_name: Attribute holding the expiry timestamp.
            enabled: Whether expiry should be enabled.

        Returns:
            StorageResult: Outcome of the call.
        """
        pass

    @abstractmethod
    def put(
        self,
        handle: TableHandle,
        record: Union[Record, Dict[str, Any]]
    ) -> StorageResult:
        """Write a record, overwriting any record with the same key.

        Args:
            handle: Table to write to.
            record: Record or raw item to write.

        Returns:
            StorageResult: Outcome, with the prior item in ``item`` if any.
        """
        pass

    @abstractmethod
    def update(
        self,
        handle: TableHandle,
        key: Any,
        update_expression: str,
        value_bindings: Optional[Dict[str, Any]] = None,
        condition: Optional[str] = None,
        attribute_names: Optional[Dict[str, str]] = None,
        return_values: str = "UPDATED_NEW"
    ) -> StorageResult:
        """Apply a field-level update, optionally conditional.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.
            update_expression: Update expression, e.g. ``set info.rating = :v``.
            value_bindings: Values for the expression placeholders.
            condition: Optional condition expression checked against stored state.
            attribute_names: Optional attribute name placeholders.
            return_values: Which attributes the store should return.

        Returns:
            StorageResult: Outcome, with returned fields in ``attributes``.
        """
        pass

    @abstractmethod
    def delete(
        self,
        handle: TableHandle,
        key: Any,
        condition: Optional[str] = None,
        value_bindings: Optional[Dict[str, Any]] = None
    ) -> StorageResult:
        """Delete a record, optionally conditional.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.
            condition: Optional condition expression.
            value_bindings: Values for the condition placeholders.

        Returns:
            StorageResult: Outcome, with the deleted item in ``item`` if any.
        """
        pass

    @abstractmethod
    def get(self, handle: TableHandle, key: Any) -> StorageResult:
        """Read a record by primary key.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.

        Returns:
            StorageResult: SUCCESS with the item, or NOT_FOUND.
        """
        pass

    def increment(
        self,
        handle: TableHandle,
        key: Any,
        field: str,
        delta: Union[int, float] = 1
    ) -> StorageResult:
        """Atomically add ``delta`` to a numeric field.

        The addition is evaluated by the store against the stored value, so
        concurrent increments are not lost.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.
            field: Document path of the numeric field, e.g. ``info.rating``.
            delta: Amount to add.

        Returns:
            StorageResult: Outcome, with the new value in ``attributes``.
        """
        return self.update(
            handle,
            key,
            f"set {field} = {field} + :delta",
            value_bindings={":delta": delta},
        )

# Import implementations after defining the base class to avoid circular imports
from .dynamodb_storage import DynamoDBRecordStorage

__all__ = [
    'RecordStorage',
    'DynamoDBRecordStorage',
    'Record',
    'OperationStatus',
    'StorageResult',
    'TableHandle',
    'StorageError',
    'TableCreationError',
    'TableActivationTimeout',
]
