"""
测试用的 DynamoDB 桩对象

FakeDynamoDBResource 模拟 boto3 DynamoDB resource 中记录存储用到的部分:
建表、DescribeTable、UpdateTimeToLive 以及 put/get/update/delete_item.
update_item 支持 ``set a.b = :v`` 与 ``set a.b = a.b + :v``, 条件表达式支持
``path <op> :v`` 形式的比较. 每个表的读改写在锁内完成, 与服务端原子计数行为一致.
"""

import copy
import re
import threading
import pytest
from botocore.exceptions import ClientError

from config.config import Config
from storages import DynamoDBRecordStorage

SET_PATTERN = re.compile(r'^\s*set\s+([\w.]+)\s*=\s*(.+?)\s*$', re.IGNORECASE)
CONDITION_PATTERN = re.compile(r'^\s*([\w.]+)\s*(>=|<=|<>|>|<|=)\s*(:\w+)\s*$')

COMPARATORS = {
    '>=': lambda a, b: a >= b,
    '<=': lambda a, b: a <= b,
    '>': lambda a, b: a > b,
    '<': lambda a, b: a < b,
    '=': lambda a, b: a == b,
    '<>': lambda a, b: a != b,
}


def client_error(code, message="", operation="Operation"):
    return ClientError({'Error': {'Code': code, 'Message': message or code}}, operation)


def _check_types(value):
    # boto3 的 resource 层不接受 float
    if isinstance(value, float):
        raise TypeError("Float types are not supported. Use Decimal types instead.")
    if isinstance(value, dict):
        for v in value.values():
            _check_types(v)
    elif isinstance(value, list):
        for v in value:
            _check_types(v)


def _get_path(item, path):
    current = item
    for part in path.split('.'):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _set_path(item, path, value):
    parts = path.split('.')
    current = item
    for part in parts[:-1]:
        if not isinstance(current.get(part), dict):
            raise client_error("ValidationException",
                               "The document path provided in the update expression is invalid for update",
                               "UpdateItem")
        current = current[part]
    current[parts[-1]] = value


def _nested(path, value):
    result = value
    for part in reversed(path.split('.')):
        result = {part: result}
    return result


class FakeTable:
    def __init__(self, name, key_names):
        self.name = name
        self.key_names = key_names
        self.items = {}
        self.errors = {}
        self.calls = []
        self.lock = threading.Lock()

    def _raise_if_failing(self, operation):
        error = self.errors.get(operation)
        if error is not None:
            raise error

    def _key(self, key):
        return tuple(key[name] for name in self.key_names)

    def _evaluate(self, condition, values):
        if not condition:
            return True
        match = CONDITION_PATTERN.match(condition)
        assert match, f"unsupported condition {condition!r}"
        path, op, placeholder = match.groups()
        return lambda item: (
            item is not None
            and _get_path(item, path) is not None
            and COMPARATORS[op](_get_path(item, path), values[placeholder])
        )

    def put_item(self, Item, ReturnValues='NONE'):
        self.calls.append(('put_item', Item))
        self._raise_if_failing('put_item')
        _check_types(Item)
        with self.lock:
            key = self._key(Item)
            previous = self.items.get(key)
            self.items[key] = copy.deepcopy(Item)
        if ReturnValues == 'ALL_OLD' and previous is not None:
            return {'Attributes': previous}
        return {}

    def get_item(self, Key, ConsistentRead=False):
        self.calls.append(('get_item', Key))
        self._raise_if_failing('get_item')
        with self.lock:
            item = self.items.get(self._key(Key))
        if item is None:
            return {}
        return {'Item': copy.deepcopy(item)}

    def update_item(self, Key, UpdateExpression, ReturnValues='NONE',
                    ExpressionAttributeValues=None, ConditionExpression=None,
                    ExpressionAttributeNames=None):
        self.calls.append(('update_item', Key, UpdateExpression, ConditionExpression))
        self._raise_if_failing('update_item')
        values = ExpressionAttributeValues or {}
        _check_types(values)

        match = SET_PATTERN.match(UpdateExpression)
        assert match, f"unsupported update expression {UpdateExpression!r}"
        path, rhs = match.groups()
        operands = [part.strip() for part in rhs.split('+')]

        with self.lock:
            key = self._key(Key)
            current = self.items.get(key)
            check = self._evaluate(ConditionExpression, values)
            if check is not True and not check(current):
                raise client_error("ConditionalCheckFailedException",
                                   "The conditional request failed", "UpdateItem")

            updated = copy.deepcopy(current) if current is not None else dict(Key)
            total = None
            for operand in operands:
                value = values[operand] if operand.startswith(':') else _get_path(updated, operand)
                if value is None:
                    raise client_error("ValidationException",
                                       "The provided expression refers to an attribute that does not exist in the item",
                                       "UpdateItem")
                total = value if total is None else total + value
            _set_path(updated, path, total)
            self.items[key] = updated

        if ReturnValues == 'UPDATED_NEW':
            return {'Attributes': _nested(path, total)}
        if ReturnValues == 'ALL_NEW':
            return {'Attributes': copy.deepcopy(updated)}
        return {}

    def delete_item(self, Key, ReturnValues='NONE', ConditionExpression=None,
                    ExpressionAttributeValues=None):
        self.calls.append(('delete_item', Key, ConditionExpression))
        self._raise_if_failing('delete_item')
        values = ExpressionAttributeValues or {}
        _check_types(values)

        with self.lock:
            key = self._key(Key)
            current = self.items.get(key)
            check = self._evaluate(ConditionExpression, values)
            if check is not True and not check(current):
                raise client_error("ConditionalCheckFailedException",
                                   "The conditional request failed", "DeleteItem")
            self.items.pop(key, None)

        if ReturnValues == 'ALL_OLD' and current is not None:
            return {'Attributes': current}
        return {}


class FakeClient:
    def __init__(self, resource):
        self.resource = resource
        self.statuses = {}
        self.ttl_calls = []
        self.ttl_error = None
        self.describe_calls = 0

    def describe_table(self, TableName):
        self.describe_calls += 1
        if TableName not in self.resource.tables:
            raise client_error("ResourceNotFoundException",
                               f"Requested resource not found: Table: {TableName} not found",
                               "DescribeTable")
        queue = self.statuses.get(TableName) or ['ACTIVE']
        status = queue.pop(0) if len(queue) > 1 else queue[0]
        return {'Table': {'TableName': TableName, 'TableStatus': status}}

    def update_time_to_live(self, TableName, TimeToLiveSpecification):
        self.ttl_calls.append((TableName, TimeToLiveSpecification))
        if self.ttl_error is not None:
            raise self.ttl_error
        return {'TimeToLiveSpecification': TimeToLiveSpecification}


class _Meta:
    def __init__(self, client):
        self.client = client


class FakeDynamoDBResource:
    def __init__(self):
        self.tables = {}
        self.create_calls = []
        self.create_error = None
        self.meta = _Meta(FakeClient(self))

    def create_table(self, TableName, KeySchema, AttributeDefinitions, ProvisionedThroughput):
        self.create_calls.append({
            'TableName': TableName,
            'KeySchema': KeySchema,
            'AttributeDefinitions': AttributeDefinitions,
            'ProvisionedThroughput': ProvisionedThroughput,
        })
        if self.create_error is not None:
            raise self.create_error
        if TableName in self.tables:
            raise client_error("ResourceInUseException",
                               f"Cannot create preexisting table: {TableName}", "CreateTable")
        table = FakeTable(TableName, [element['AttributeName'] for element in KeySchema])
        self.tables[TableName] = table
        return table

    def Table(self, name):
        return self.tables[name]


@pytest.fixture
def config(monkeypatch):
    monkeypatch.setenv('DYNAMODB_ENDPOINT_URL', 'http://localhost:8000')
    monkeypatch.setenv('AWS_REGION', 'us-west-2')
    monkeypatch.setenv('MOVIES_TABLE_NAME', 'Movies')
    monkeypatch.setenv('TTL_ATTRIBUTE', 'ttl')
    monkeypatch.setenv('TABLE_ACTIVE_TIMEOUT', '5')
    monkeypatch.setenv('TABLE_POLL_INTERVAL', '0')
    monkeypatch.setenv('MAX_RETRY_ATTEMPTS', '3')
    monkeypatch.delenv('DEBUG', raising=False)
    return Config()


@pytest.fixture
def dynamodb():
    return FakeDynamoDBResource()


@pytest.fixture
def storage(config, dynamodb):
    return DynamoDBRecordStorage(config, resource=dynamodb)


@pytest.fixture
def movies(storage):
    return storage.ensure_table('Movies')
