import time
import logging
import traceback
from typing import Any, Dict, List, Optional, Tuple, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from config.config import Config

from . import RecordStorage
from .exceptions import TableCreationError, TableActivationTimeout
from .records import (
    Record,
    OperationStatus,
    StorageResult,
    TableHandle,
    to_dynamo_value,
    from_dynamo_value,
)

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"
RESOURCE_IN_USE = "ResourceInUseException"
RESOURCE_NOT_FOUND = "ResourceNotFoundException"

DEFAULT_KEY_SCHEMA = [(Record.KEY_ATTRIBUTE, "N")]
KEY_TYPES = ("HASH", "RANGE")


def _error_code(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Code", "Unknown")
    return type(error).__name__


def _error_message(error: Exception) -> str:
    if isinstance(error, ClientError):
        return error.response.get("Error", {}).get("Message", str(error))
    return str(error)


class DynamoDBRecordStorage(RecordStorage):
    """Record storage implementation using Amazon DynamoDB.

    This class implements the RecordStorage interface on top of the boto3
    DynamoDB resource. It works the same against AWS and against DynamoDB
    Local; the endpoint, region and credentials come from the config.

    Throttling and other transient errors are retried by botocore's
    ``standard`` retry mode, bounded by ``config.max_retry_attempts``.
    Conditional check failures are never retried.

    Args:
        config: Configuration to use. Defaults to one read from the environment.
        resource: Optional pre-built boto3 DynamoDB resource.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        resource: Any = None
    ):
        """Initialize a DynamoDBRecordStorage."""
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

        if resource is None:
            resource = boto3.resource(
                'dynamodb',
                endpoint_url=self.config.dynamodb_endpoint_url or None,
                region_name=self.config.aws_region,
                aws_access_key_id=self.config.aws_access_key_id,
                aws_secret_access_key=self.config.aws_secret_access_key,
                config=BotoConfig(
                    retries={
                        'total_max_attempts': self.config.max_retry_attempts,
                        'mode': 'standard',
                    }
                )
            )

        self.dynamodb = resource
        self.client = resource.meta.client

    # Table lifecycle

    def ensure_table(
        self,
        name: str,
        key_schema: Optional[List[Tuple[str, str]]] = None,
        throughput: Optional[Tuple[int, int]] = None
    ) -> TableHandle:
        """Create the table if needed and wait for it to become ACTIVE.

        Args:
            name: Name of the table.
            key_schema: (attribute_name, attribute_type) pairs, partition key first.
            throughput: (read_units, write_units). Defaults to the config values.

        Returns:
            TableHandle: Handle to the new or already existing table.

        Raises:
            TableCreationError: If creation fails for a reason other than the
                table already existing.
            TableActivationTimeout: If the table is not ACTIVE in time.
        """
        key_schema = list(key_schema or DEFAULT_KEY_SCHEMA)
        if not 1 <= len(key_schema) <= len(KEY_TYPES):
            raise ValueError("key_schema must contain a partition key and at most one sort key")
        read_units, write_units = throughput or self.config.throughput

        try:
            self.logger.info(f"Attempting to create table {name}; please wait...")
            table = self.dynamodb.create_table(
                TableName=name,
                KeySchema=[
                    {'AttributeName': attr_name, 'KeyType': key_type}
                    for (attr_name, _), key_type in zip(key_schema, KEY_TYPES)
                ],
                AttributeDefinitions=[
                    {'AttributeName': attr_name, 'AttributeType': attr_type}
                    for attr_name, attr_type in key_schema
                ],
                ProvisionedThroughput={
                    'ReadCapacityUnits': read_units,
                    'WriteCapacityUnits': write_units,
                }
            )
        except ClientError as e:
            if _error_code(e) != RESOURCE_IN_USE:
                self.logger.error(f"Unable to create table {name}: {_error_message(e)}")
                raise TableCreationError(name, _error_message(e)) from e
            self.logger.info(f"Table {name} already exists, using the existing table")
            table = self.dynamodb.Table(name)
        except BotoCoreError as e:
            self.logger.error(f"Unable to create table {name}: {e}")
            self.logger.error(traceback.format_exc())
            raise TableCreationError(name, str(e)) from e

        status = self._wait_until_active(name)
        self.logger.info(f"Success. Table {name} status: {status}")
        return TableHandle(name, key_schema, table=table, status=status)

    def _describe_status(self, name: str) -> str:
        try:
            response = self.client.describe_table(TableName=name)
            return response['Table']['TableStatus']
        except ClientError as e:
            # A freshly created table may not be visible yet
            if _error_code(e) == RESOURCE_NOT_FOUND:
                return "NOT_FOUND"
            raise TableCreationError(name, _error_message(e)) from e
        except BotoCoreError as e:
            self.logger.warning(f"Unable to describe table {name}: {e}")
            return "UNREACHABLE"

    def _wait_until_active(self, name: str) -> str:
        """Poll DescribeTable with backoff until ACTIVE or the timeout passes."""
        timeout = self.config.table_active_timeout
        deadline = time.monotonic() + timeout
        interval = self.config.table_poll_interval

        while True:
            status = self._describe_status(name)
            if status == "ACTIVE":
                return status

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                self.logger.error(f"Table {name} did not become ACTIVE within {timeout}s, last status {status}")
                raise TableActivationTimeout(name, timeout, status)

            delay = min(interval, remaining)
            self.logger.info(f"Table {name} is {status}, checking again in {delay:.2f}s")
            time.sleep(delay)
            interval = min(interval * self.config.table_poll_backoff, self.config.table_poll_max_interval)

    def configure_expiry(
        self,
        handle: TableHandle,
        attribute_name: str = "ttl",
        enabled: bool = True
    ) -> StorageResult:
        """Enable or disable TTL on an attribute of the table.

        Failures are logged and returned, never raised.

        Args:
            handle: Table to configure.
            attribute_name: Attribute holding the expiry timestamp.
            enabled: Whether expiry should be enabled.

        Returns:
            StorageResult: SUCCESS, or TRANSIENT_ERROR if the call failed.
        """
        try:
            self.client.update_time_to_live(
                TableName=handle.name,
                TimeToLiveSpecification={
                    'AttributeName': attribute_name,
                    'Enabled': enabled,
                }
            )
        except Exception as e:
            # Best effort, the table stays usable without expiry
            self.logger.error(
                f"Unable to {'enable' if enabled else 'disable'} TTL on "
                f"{handle.name}.{attribute_name}: {_error_message(e)}"
            )
            return StorageResult(
                "configure_expiry",
                OperationStatus.TRANSIENT_ERROR,
                error_code=_error_code(e),
                error_message=_error_message(e)
            )

        self.logger.info(f"TTL {'enabled' if enabled else 'disabled'} on {handle.name}.{attribute_name}")
        return StorageResult("configure_expiry", OperationStatus.SUCCESS)

    # Item operations

    def _failure(
        self,
        operation: str,
        handle: TableHandle,
        key: Optional[Dict[str, Any]],
        error: Exception,
        condition: Optional[str] = None,
        value_bindings: Optional[Dict[str, Any]] = None
    ) -> StorageResult:
        """Log a failed item operation and turn it into a result."""
        code = _error_code(error)
        message = _error_message(error)

        if code == CONDITIONAL_CHECK_FAILED:
            status = OperationStatus.CONDITION_FAILED
            self.logger.warning(
                f"Conditional {operation} rejected on {handle.name} key={key}: "
                f"condition={condition!r} values={value_bindings}"
            )
        else:
            status = OperationStatus.TRANSIENT_ERROR
            self.logger.error(
                f"Unable to {operation} item on {handle.name} key={key}: {code}: {message}"
            )
            if condition:
                self.logger.error(f"Expected: condition={condition!r} values={value_bindings}")
            if not isinstance(error, ClientError):
                self.logger.error(traceback.format_exc())

        return StorageResult(
            operation,
            status,
            key=key,
            error_code=code,
            error_message=message,
            **self._item_attributes(handle)
        )

    def _item_attributes(self, handle: TableHandle) -> Dict[str, str]:
        """Attribute names needed to read a returned item back as a Record."""
        return {
            'key_attribute': handle.partition_key,
            'ttl_attribute': self.config.ttl_attribute,
        }

    def put(
        self,
        handle: TableHandle,
        record: Union[Record, Dict[str, Any]]
    ) -> StorageResult:
        """Write a record to the table, overwriting any record with the same key.

        Args:
            handle: Table to write to.
            record: Record or raw item to write. A Record is stored under the
                table's partition key and the configured TTL attribute.

        Returns:
            StorageResult: Outcome, with the prior item in ``item`` if any.
        """
        if isinstance(record, Record):
            item = record.to_item(handle.partition_key, self.config.ttl_attribute)
        else:
            item = to_dynamo_value(record)
        key = {attr_name: item.get(attr_name) for attr_name, _ in handle.key_schema}

        try:
            self.logger.info(f"Adding item {key} to {handle.name}...")
            response = handle.table.put_item(Item=item, ReturnValues='ALL_OLD')
        except (ClientError, BotoCoreError) as e:
            return self._failure("put", handle, key, e)

        previous = response.get('Attributes')
        self.logger.info(f"PutItem succeeded: {key}")
        return StorageResult(
            "put",
            OperationStatus.SUCCESS,
            key=key,
            item=from_dynamo_value(previous) if previous else None,
            **self._item_attributes(handle)
        )

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
        """Apply a field-level update to a record.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.
            update_expression: Update expression, e.g. ``set info.rating = :value``.
            value_bindings: Values for the expression placeholders.
            condition: Optional condition expression checked by the store.
            attribute_names: Optional attribute name placeholders.
            return_values: Which attributes the store should return.

        Returns:
            StorageResult: SUCCESS with returned fields in ``attributes``,
            CONDITION_FAILED if the condition did not hold, or TRANSIENT_ERROR.
        """
        full_key = handle.build_key(key)
        kwargs = {
            'Key': full_key,
            'UpdateExpression': update_expression,
            'ReturnValues': return_values,
        }
        if value_bindings:
            kwargs['ExpressionAttributeValues'] = to_dynamo_value(value_bindings)
        if condition:
            kwargs['ConditionExpression'] = condition
        if attribute_names:
            kwargs['ExpressionAttributeNames'] = attribute_names

        try:
            self.logger.info(f"Updating item {full_key} on {handle.name}: {update_expression}")
            response = handle.table.update_item(**kwargs)
        except (ClientError, BotoCoreError) as e:
            return self._failure("update", handle, full_key, e, condition, value_bindings)

        attributes = from_dynamo_value(response.get('Attributes', {}))
        self.logger.info(f"UpdateItem succeeded: {attributes}")
        return StorageResult(
            "update",
            OperationStatus.SUCCESS,
            key=full_key,
            attributes=attributes
        )

    def delete(
        self,
        handle: TableHandle,
        key: Any,
        condition: Optional[str] = None,
        value_bindings: Optional[Dict[str, Any]] = None
    ) -> StorageResult:
        """Delete a record from the table.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.
            condition: Optional condition expression checked by the store.
            value_bindings: Values for the condition placeholders.

        Returns:
            StorageResult: SUCCESS with the deleted item in ``item`` if there
            was one, CONDITION_FAILED, or TRANSIENT_ERROR.
        """
        full_key = handle.build_key(key)
        kwargs = {'Key': full_key, 'ReturnValues': 'ALL_OLD'}
        if condition:
            kwargs['ConditionExpression'] = condition
        if value_bindings:
            kwargs['ExpressionAttributeValues'] = to_dynamo_value(value_bindings)

        try:
            self.logger.info(f"Deleting item {full_key} from {handle.name}...")
            response = handle.table.delete_item(**kwargs)
        except (ClientError, BotoCoreError) as e:
            return self._failure("delete", handle, full_key, e, condition, value_bindings)

        previous = response.get('Attributes')
        self.logger.info(f"DeleteItem succeeded: {full_key}")
        return StorageResult(
            "delete",
            OperationStatus.SUCCESS,
            key=full_key,
            item=from_dynamo_value(previous) if previous else None,
            **self._item_attributes(handle)
        )

    def get(
        self,
        handle: TableHandle,
        key: Any,
        consistent_read: bool = True
    ) -> StorageResult:
        """Read a record by primary key.

        Args:
            handle: Table holding the record.
            key: Primary key value or full key dict.
            consistent_read: Whether to request a strongly consistent read.

        Returns:
            StorageResult: SUCCESS with the item in ``item`` (and as a Record
            in ``record``), NOT_FOUND, or TRANSIENT_ERROR.
        """
        full_key = handle.build_key(key)

        try:
            self.logger.info(f"Reading item {full_key} from {handle.name}...")
            response = handle.table.get_item(Key=full_key, ConsistentRead=consistent_read)
        except (ClientError, BotoCoreError) as e:
            return self._failure("get", handle, full_key, e)

        if 'Item' not in response:
            self.logger.info(f"No item {full_key} in {handle.name}")
            return StorageResult("get", OperationStatus.NOT_FOUND, key=full_key,
                                 **self._item_attributes(handle))

        item = from_dynamo_value(response['Item'])
        self.logger.info(f"GetItem succeeded: {item}")
        return StorageResult("get", OperationStatus.SUCCESS, key=full_key, item=item,
                             **self._item_attributes(handle))
