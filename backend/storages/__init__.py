"""
Storages module for the movie record store.

This module provides storage capabilities for movie records, including:
- Record Storage: Typed put/update/delete/get over a single table
- DynamoDB Record Storage: Record storage backed by DynamoDB or DynamoDB Local
"""

from .record_storages import (
    RecordStorage,
    DynamoDBRecordStorage,
    Record,
    OperationStatus,
    StorageResult,
    TableHandle,
    StorageError,
    TableCreationError,
    TableActivationTimeout,
)

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
