import sys
import time
import logging
import argparse
from config.config import load_config
from storages import DynamoDBRecordStorage, OperationStatus, Record, StorageError

MOVIE_ID = 1
MOVIE_YEAR = 2015
MOVIE_TITLE = "The Big New Movie"
# 已过期的时间戳, TTL 开启后由存储端负责清理
MOVIE_TTL = 1

logger = logging.getLogger(__name__)


def new_movie():
    """演示用的电影记录"""
    return Record(
        MOVIE_ID,
        info={
            "year": MOVIE_YEAR,
            "title": MOVIE_TITLE,
            "plot": "Nothing happens at all.",
            "rating": 1,
        },
        ttl=MOVIE_TTL
    )


def _report(result, action):
    if result.ok:
        return
    if result.status == OperationStatus.CONDITION_FAILED:
        logger.warning(f"{action}未执行, 条件不满足: {MOVIE_YEAR} {MOVIE_TITLE}")
    else:
        logger.error(f"{action}失败: {MOVIE_YEAR} {MOVIE_TITLE} ({result.error_code}: {result.error_message})")


def run_demo(storage, table_name, ttl_attribute="ttl", increments=3, pause=0.0):
    """依次执行建表、TTL、写入、原子计数、条件更新、条件删除和读取

    Args:
        storage: RecordStorage 实例
        table_name: 表名
        ttl_attribute: TTL 字段名
        increments: 原子计数递增次数
        pause: 读取前等待的秒数

    Returns:
        dict: 每个步骤的 StorageResult, 键为步骤名

    Raises:
        StorageError: 建表失败或等待表就绪超时
    """
    results = {}

    handle = storage.ensure_table(table_name)
    results["configure_expiry"] = storage.configure_expiry(handle, ttl_attribute, True)

    logger.info("写入新记录...")
    results["put"] = storage.put(handle, new_movie())
    _report(results["put"], "写入记录")

    results["increments"] = []
    for _ in range(increments):
        logger.info("原子计数器递增...")
        result = storage.increment(handle, MOVIE_ID, "info.rating", 1)
        _report(result, "递增评分")
        results["increments"].append(result)

    logger.info("尝试条件更新...")
    results["conditional_update"] = storage.update(
        handle,
        MOVIE_ID,
        "set info.rating = :value",
        value_bindings={":value": 0, ":rating": 4},
        condition="info.rating >= :rating"
    )
    _report(results["conditional_update"], "条件更新")

    logger.info("尝试条件删除...")
    results["conditional_delete"] = storage.delete(
        handle,
        MOVIE_ID,
        condition="info.rating > :val",
        value_bindings={":val": 5.0}
    )
    _report(results["conditional_delete"], "条件删除")

    if pause > 0:
        time.sleep(pause)

    logger.info("读取记录...")
    results["get"] = storage.get(handle, MOVIE_ID)
    if results["get"].status == OperationStatus.NOT_FOUND:
        logger.info(f"记录不存在: {MOVIE_YEAR} {MOVIE_TITLE}")
    else:
        _report(results["get"], "读取记录")

    return results


def main(argv=None):
    """主函数"""
    config = load_config()

    parser = argparse.ArgumentParser(description='DynamoDB Local 电影记录演示')
    parser.add_argument('--table', default=config.table_name, help=f'表名 (默认: {config.table_name})')
    parser.add_argument('--increments', type=int, default=3, help='原子计数递增次数 (默认: 3)')
    parser.add_argument('--pause', type=float, default=0.0, help='读取前等待的秒数')
    args = parser.parse_args(argv)

    # 设置日志级别
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )

    storage = DynamoDBRecordStorage(config)
    try:
        results = run_demo(
            storage,
            args.table,
            ttl_attribute=config.ttl_attribute,
            increments=args.increments,
            pause=args.pause
        )
    except StorageError as e:
        logger.error(f"启动失败: {e}")
        return 1

    record = results["get"].record
    logger.info(f"读取结果: {results['get'].to_dict()}")
    logger.info(f"最终记录: {record.to_dict() if record else None}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
