#!/usr/bin/env python3
"""
电影数据批量导入脚本
从 JSON 文件读取电影列表并逐条写入记录表, 遇到第一条写入失败即停止
"""

import os
import sys
import json
import logging
import argparse
from decimal import Decimal

# 将 backend 目录加入路径, 以便直接运行脚本
current_dir = os.path.dirname(os.path.abspath(__file__))
backend_dir = os.path.dirname(current_dir)
if backend_dir not in sys.path:
    sys.path.append(backend_dir)

from config.config import load_config
from storages import DynamoDBRecordStorage, Record, StorageError

logger = logging.getLogger(__name__)

RESERVED_FIELDS = ('id', 'info', 'ttl')


def read_movies(path):
    """
    读取电影 JSON 文件

    每个条目可包含 id (缺省时使用从 1 开始的位置序号)、info 和 ttl,
    其余顶层字段 (例如 year、title) 并入 info

    Args:
        path: JSON 文件路径, 内容为数组

    Returns:
        list: Record 列表
    """
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f, parse_float=Decimal)

    if not isinstance(data, list):
        raise ValueError(f"{path} 的内容必须是 JSON 数组")

    records = []
    for position, entry in enumerate(data, start=1):
        info = {k: v for k, v in entry.items() if k not in RESERVED_FIELDS}
        info.update(entry.get('info') or {})
        ttl = entry.get('ttl')
        records.append(Record.from_dict({
            'id': int(entry.get('id', position)),
            'info': info,
            'ttl': int(ttl) if ttl is not None else None,
        }))
    return records


def put_movies(storage, handle, records):
    """
    逐条写入电影记录, 遇到第一条失败即停止

    Args:
        storage: RecordStorage 实例
        handle: 目标表的 TableHandle
        records: Record 列表

    Returns:
        int: 成功写入的记录数
    """
    loaded = 0
    for record in records:
        result = storage.put(handle, record)
        if not result.ok:
            logger.error(f"无法导入电影: {record.info.get('year')} {record.info.get('title')} "
                         f"({result.error_code}: {result.error_message})")
            break
        logger.info(f"导入成功: {record.info.get('year')} {record.info.get('title')}")
        loaded += 1
    return loaded


def load_movies(storage, handle, path):
    """读取 JSON 文件并批量写入, 返回成功写入的记录数"""
    return put_movies(storage, handle, read_movies(path))


def main(argv=None):
    """主函数"""
    config = load_config()

    parser = argparse.ArgumentParser(description='批量导入电影数据')
    parser.add_argument('file', help='电影数据 JSON 文件')
    parser.add_argument('--table', default=config.table_name, help=f'表名 (默认: {config.table_name})')
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s'
    )

    # 先读取文件, 再建表
    try:
        records = read_movies(args.file)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.error(f"无法读取电影数据 {args.file}: {e}")
        return 1

    storage = DynamoDBRecordStorage(config)
    try:
        handle = storage.ensure_table(args.table)
    except StorageError as e:
        logger.error(f"启动失败: {e}")
        return 1

    total = len(records)
    loaded = put_movies(storage, handle, records)
    logger.info(f"共导入 {loaded}/{total} 条记录")
    return 0 if loaded == total else 1


if __name__ == "__main__":
    sys.exit(main())
