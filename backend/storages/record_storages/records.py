from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


def to_dynamo_value(value: Any) -> Any:
    """Convert a Python value into something the boto3 resource layer accepts.

    boto3 refuses ``float``, so floats are turned into ``Decimal`` (through
    ``str`` to keep the literal precision). Containers are converted
    recursively.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamo_value(v) for v in value]
    return value


def from_dynamo_value(value: Any) -> Any:
    """Convert a value read from the store back into plain Python types."""
    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return int(value)
        return float(value)
    if isinstance(value, dict):
        return {k: from_dynamo_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamo_value(v) for v in value]
    if isinstance(value, set):
        return {from_dynamo_value(v) for v in value}
    return value


class Record:
    """A movie record stored in the table.

    Args:
        id: Numeric primary key of the record.
        info: Movie details such as year, title, plot and rating.
        ttl: Optional expiry time in epoch seconds.
    """

    KEY_ATTRIBUTE = "ID"
    TTL_ATTRIBUTE = "ttl"

    def __init__(
        self,
        id: int,
        info: Optional[Dict[str, Any]] = None,
        ttl: Optional[int] = None
    ):
        """Initialize a Record."""
        if isinstance(id, bool) or not isinstance(id, int):
            raise TypeError(f"Record id must be an integer, got {id!r}")
        self.id = id
        self.info = dict(info or {})
        self.ttl = ttl

    def to_item(
        self,
        key_attribute: str = KEY_ATTRIBUTE,
        ttl_attribute: str = TTL_ATTRIBUTE
    ) -> Dict[str, Any]:
        """Convert the record to a store item.

        Args:
            key_attribute: Attribute name holding the primary key.
            ttl_attribute: Attribute name holding the expiry timestamp.

        Returns:
            Dict[str, Any]: Item ready to be written with boto3.
        """
        item = {
            key_attribute: self.id,
            "info": to_dynamo_value(self.info),
        }
        if self.ttl is not None:
            item[ttl_attribute] = int(self.ttl)
        return item

    @classmethod
    def from_item(
        cls,
        item: Dict[str, Any],
        key_attribute: str = KEY_ATTRIBUTE,
        ttl_attribute: str = TTL_ATTRIBUTE
    ) -> 'Record':
        """Create a Record from a store item.

        Args:
            item: Item as returned by boto3.
            key_attribute: Attribute name holding the primary key.
            ttl_attribute: Attribute name holding the expiry timestamp.

        Returns:
            Record: A new Record instance.
        """
        plain = from_dynamo_value(item)
        return cls(
            id=plain[key_attribute],
            info=plain.get("info", {}),
            ttl=plain.get(ttl_attribute)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "info": self.info, "ttl": self.ttl}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Record':
        return cls(
            id=data["id"],
            info=data.get("info", {}),
            ttl=data.get("ttl")
        )

    def __eq__(self, other):
        if not isinstance(other, Record):
            return NotImplemented
        return (self.id, self.info, self.ttl) == (other.id, other.info, other.ttl)

    def __repr__(self):
        return f"Record(id={self.id!r}, info={self.info!r}, ttl={self.ttl!r})"


class OperationStatus(Enum):
    """Outcome of a single storage operation."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONDITION_FAILED = "condition_failed"
    TRANSIENT_ERROR = "transient_error"


class StorageResult:
    """Result of a storage operation.

    Operations never raise for data-plane failures; callers branch on
    ``status`` instead.

    Args:
        operation: Name of the operation that produced the result.
        status: Outcome of the operation.
        key: Key the operation targeted, if any.
        item: Whole item returned by the store (read item or prior item).
        attributes: Attributes returned by an update.
        error_code: Store error code for failed operations.
        error_message: Human readable error message for failed operations.
        key_attribute: Attribute holding the primary key in ``item``.
        ttl_attribute: Attribute holding the expiry timestamp in ``item``.
    """

    def __init__(
        self,
        operation: str,
        status: OperationStatus,
        key: Optional[Dict[str, Any]] = None,
        item: Optional[Dict[str, Any]] = None,
        attributes: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
        key_attribute: str = Record.KEY_ATTRIBUTE,
        ttl_attribute: str = Record.TTL_ATTRIBUTE
    ):
        """Initialize a StorageResult."""
        self.operation = operation
        self.status = status
        self.key = key
        self.item = item
        self.attributes = attributes
        self.error_code = error_code
        self.error_message = error_message
        self.key_attribute = key_attribute
        self.ttl_attribute = ttl_attribute

    @property
    def ok(self) -> bool:
        return self.status == OperationStatus.SUCCESS

    @property
    def record(self) -> Optional[Record]:
        """The returned item as a Record, or None when there is no item."""
        if not self.item:
            return None
        return Record.from_item(self.item, self.key_attribute, self.ttl_attribute)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the result to a dictionary.

        Returns:
            Dict[str, Any]: Dictionary representation of the result.
        """
        return {
            "operation": self.operation,
            "status": self.status.value,
            "key": self.key,
            "item": self.item,
            "attributes": self.attributes,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }

    def __repr__(self):
        return (f"StorageResult(operation={self.operation!r}, status={self.status.value!r}, "
                f"key={self.key!r}, error_code={self.error_code!r})")


class TableHandle:
    """Handle to a table that has been ensured and is active.

    Args:
        name: Table name.
        key_schema: ``(attribute_name, attribute_type)`` pairs, partition key first.
        table: The underlying boto3 ``Table`` resource.
        status: Last observed table status.
    """

    def __init__(
        self,
        name: str,
        key_schema: List[Tuple[str, str]],
        table: Any = None,
        status: str = "ACTIVE"
    ):
        """Initialize a TableHandle."""
        self.name = name
        self.key_schema = list(key_schema)
        self.table = table
        self.status = status

    @property
    def partition_key(self) -> str:
        return self.key_schema[0][0]

    def build_key(self, key: Any) -> Dict[str, Any]:
        """Build a full key dictionary.

        A dict is taken as the full key; any other value is used as the
        partition key value.
        """
        if isinstance(key, dict):
            return to_dynamo_value(key)
        if len(self.key_schema) > 1:
            raise ValueError(
                f"Table {self.name} has a composite key; pass the key as a dict"
            )
        return {self.partition_key: to_dynamo_value(key)}

    def __eq__(self, other):
        if not isinstance(other, TableHandle):
            return NotImplemented
        return self.name == other.name and self.key_schema == other.key_schema

    def __repr__(self):
        return f"TableHandle(name={self.name!r}, status={self.status!r})"
