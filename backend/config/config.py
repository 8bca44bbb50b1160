import os
import logging
from dotenv import load_dotenv

# 尝试加载.env文件
load_dotenv()


def _get_int(name, default):
    value = os.getenv(name, str(default))
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {value!r}")


def _get_float(name, default):
    value = os.getenv(name, str(default))
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {value!r}")


class Config:
    def __init__(self):
        # 基本配置
        self.debug = os.getenv('DEBUG', 'False').lower() == 'true'
        self.log_level = os.getenv('LOG_LEVEL', 'INFO').upper()

        # DynamoDB连接配置 (默认指向本地 DynamoDB Local)
        self.dynamodb_endpoint_url = os.getenv('DYNAMODB_ENDPOINT_URL', 'http://localhost:8000')
        self.aws_region = os.getenv('AWS_REGION', 'us-west-2')
        self.aws_access_key_id = os.getenv('AWS_ACCESS_KEY_ID', 'fakeMyKeyId')
        self.aws_secret_access_key = os.getenv('AWS_SECRET_ACCESS_KEY', 'fakeSecretAccessKey')

        # 表配置
        self.table_name = os.getenv('MOVIES_TABLE_NAME', 'Movies')
        self.read_capacity_units = _get_int('READ_CAPACITY_UNITS', 10)
        self.write_capacity_units = _get_int('WRITE_CAPACITY_UNITS', 10)
        self.ttl_attribute = os.getenv('TTL_ATTRIBUTE', 'ttl')

        # 等待表变为 ACTIVE 的轮询配置 (秒)
        self.table_active_timeout = _get_float('TABLE_ACTIVE_TIMEOUT', 60)
        self.table_poll_interval = _get_float('TABLE_POLL_INTERVAL', 1)
        self.table_poll_backoff = _get_float('TABLE_POLL_BACKOFF', 2)
        self.table_poll_max_interval = _get_float('TABLE_POLL_MAX_INTERVAL', 10)

        # botocore 重试次数 (包含首次请求)
        self.max_retry_attempts = _get_int('MAX_RETRY_ATTEMPTS', 3)
        if self.max_retry_attempts < 1:
            raise ValueError("MAX_RETRY_ATTEMPTS must be at least 1")

        # 打印配置信息 (不包含密钥)
        if self.debug:
            logging.info("配置初始化完成")
            logging.info(f"DynamoDB配置: Endpoint={self.dynamodb_endpoint_url}, Region={self.aws_region}")
            logging.info(f"表配置: Table={self.table_name}, "
                         f"RCU={self.read_capacity_units}, WCU={self.write_capacity_units}")
            logging.info(f"等待配置: Timeout={self.table_active_timeout}s, "
                         f"Interval={self.table_poll_interval}s, Backoff={self.table_poll_backoff}")
            logging.info(f"最大重试次数: {self.max_retry_attempts}")

    @property
    def throughput(self):
        return (self.read_capacity_units, self.write_capacity_units)


def load_config():
    """加载配置"""
    return Config()
