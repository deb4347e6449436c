"""
数据库版本迁移模块

在启动时自动检查并更新数据库结构，兼容旧版本的数据库文件。

迁移策略：
1. 每次启动都检查所有必需的列，不依赖版本号
2. 台账数值列的 NULL 统一回填为 0
3. 版本号用于追踪，但不作为迁移的唯一依据
"""

import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# 当前数据库版本 - 每次有重要更新时递增
CURRENT_DB_VERSION = "1.1.0"


async def get_db_version(db: AsyncSession) -> Optional[str]:
    """获取数据库版本，如果没有版本表则返回 None"""
    try:
        result = await db.execute(text(
            "SELECT value FROM system_config WHERE key = 'db_version'"
        ))
        row = result.fetchone()
        return row[0] if row else None
    except SQLAlchemyError:
        await db.rollback()
        return None


async def set_db_version(db: AsyncSession, version: str) -> None:
    """设置数据库版本"""
    await db.execute(text(
        "INSERT OR REPLACE INTO system_config (key, value) VALUES ('db_version', :version)"
    ), {"version": version})
    await db.commit()


async def ensure_system_config_table(db: AsyncSession) -> None:
    """确保 system_config 表存在"""
    await db.execute(text("""
        CREATE TABLE IF NOT EXISTS system_config (
            key TEXT PRIMARY KEY,
            value TEXT,
            updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
        )
    """))
    await db.commit()


async def check_column_exists(db: AsyncSession, table: str, column: str) -> bool:
    """检查表中是否存在指定列"""
    result = await db.execute(text(f"PRAGMA table_info({table})"))
    columns = [row[1] for row in result.fetchall()]
    return column in columns


async def check_table_exists(db: AsyncSession, table: str) -> bool:
    """检查表是否存在"""
    result = await db.execute(
        text("SELECT name FROM sqlite_master WHERE type='table' AND name=:table"),
        {"table": table},
    )
    return result.fetchone() is not None


async def add_column_if_not_exists(
    db: AsyncSession,
    table: str,
    column: str,
    column_type: str,
    default: str = None
) -> bool:
    """
    如果列不存在则添加

    返回值:
        True: 成功添加了列
        False: 列已存在、表不存在或添加失败
    """
    if not await check_table_exists(db, table):
        logger.debug(f"表 {table} 不存在，跳过添加列 {column}")
        return False

    if await check_column_exists(db, table, column):
        return False

    try:
        sql = f"ALTER TABLE {table} ADD COLUMN {column} {column_type}"
        if default is not None:
            sql += f" DEFAULT {default}"
        await db.execute(text(sql))
        await db.commit()
        logger.info(f"[+] 已添加列: {table}.{column}")
        return True
    except SQLAlchemyError as e:
        # 单列添加失败不影响其他列，回滚并继续
        logger.warning(f"添加列 {table}.{column} 失败: {e}")
        await db.rollback()
        return False


# ========== 必需的数据库列定义 ==========
# 格式: (表名, 列名, 列类型, 默认值)
# 列出版本迭代中新增的列，老数据库升级时自动添加
REQUIRED_COLUMNS = [
    # ========== processing_ledger ==========
    ("processing_ledger", "carry_over_state", "VARCHAR(20)", "'no_record'"),
    ("processing_ledger", "byproduct_quantity", "DECIMAL(12,2)", "0"),
    ("processing_ledger", "byproduct_price", "DECIMAL(12,2)", "0"),
    ("processing_ledger", "other_costs", "DECIMAL(12,2)", "0"),
    ("processing_ledger", "note", "TEXT", None),

    # ========== inventory_lots ==========
    ("inventory_lots", "non_expired_quantity", "DECIMAL(12,2)", "0"),
    ("inventory_lots", "expired_quantity", "DECIMAL(12,2)", "0"),
    ("inventory_lots", "processing_date", "DATETIME", None),

    # ========== dish_ingredients ==========
    # 旧数据只有配料名称
    ("dish_ingredients", "product_id", "INTEGER", None),

    # ========== units ==========
    ("units", "status", "VARCHAR(20)", "'active'"),
]

# 台账中不允许为 NULL 的数值列
LEDGER_NUMERIC_COLUMNS = [
    "raw_input", "derived_collected", "derived_dispatched", "carried_over",
    "derived_remaining", "byproduct_quantity", "raw_price", "derived_price",
    "byproduct_price", "other_costs", "processing_efficiency", "revenue",
    "cost", "net_profit",
]


async def ensure_all_columns(db: AsyncSession) -> dict:
    """
    确保所有必需的列都存在
    每次启动都会检查，不依赖版本号
    """
    result = {
        "checked": 0,
        "added": 0,
        "columns_added": []
    }

    for table, column, col_type, default in REQUIRED_COLUMNS:
        result["checked"] += 1
        added = await add_column_if_not_exists(db, table, column, col_type, default)
        if added:
            result["added"] += 1
            result["columns_added"].append(f"{table}.{column}")

    return result


async def fix_null_fields(db: AsyncSession) -> dict:
    """
    修复台账中的 NULL 数值，设置为 0
    """
    result = {"fixed": 0}

    if not await check_table_exists(db, "processing_ledger"):
        return result

    for column in LEDGER_NUMERIC_COLUMNS:
        updated = await db.execute(text(
            f"UPDATE processing_ledger SET {column} = 0 WHERE {column} IS NULL"
        ))
        result["fixed"] += updated.rowcount or 0

    await db.execute(text(
        "UPDATE processing_ledger SET carry_over_state = 'no_record' WHERE carry_over_state IS NULL"
    ))
    await db.commit()

    if result["fixed"]:
        logger.info(f"已回填台账 NULL 数值: {result['fixed']} 处")
    return result


async def run_migrations(db: AsyncSession) -> dict:
    """
    运行数据库迁移

    每次启动都检查所有必需列，不仅仅依赖版本号
    """
    result = {
        "old_version": None,
        "new_version": CURRENT_DB_VERSION,
        "columns_added": [],
        "null_fixed": 0,
        "errors": []
    }

    try:
        await ensure_system_config_table(db)

        current_version = await get_db_version(db)
        result["old_version"] = current_version

        logger.info(f"数据库版本检查: {current_version or '未知'} -> {CURRENT_DB_VERSION}")

        column_result = await ensure_all_columns(db)
        result["columns_added"] = column_result["columns_added"]

        if column_result["added"] > 0:
            logger.info(f"数据库结构更新: 添加了 {column_result['added']} 个列")
            for col in column_result["columns_added"]:
                logger.info(f"  - {col}")
        else:
            logger.info("数据库结构完整，无需更新")

        null_result = await fix_null_fields(db)
        result["null_fixed"] = null_result["fixed"]

        if current_version != CURRENT_DB_VERSION:
            await set_db_version(db, CURRENT_DB_VERSION)
            logger.info(f"数据库版本已更新为: {CURRENT_DB_VERSION}")

    except SQLAlchemyError as e:
        error_msg = f"数据库迁移出错: {e}"
        logger.error(error_msg)
        result["errors"].append(error_msg)
        await db.rollback()

    return result
