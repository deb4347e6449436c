import os
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from food_station.core.config import settings


def build_engine(database_uri: str = None):
    """
    创建异步引擎
    SQLite 文件库每次会话单独开连接（NullPool），连接不跨事件循环复用

    事务由 SQLAlchemy 显式发出 BEGIN，默认 DEFERRED；
    连接的执行选项 sqlite_begin="IMMEDIATE" 时开事务即拿写锁，多进程写入互相排队
    """
    uri = database_uri or settings.SQLITE_DATABASE_URI
    engine = create_async_engine(
        uri.replace("sqlite:///", "sqlite+aiosqlite:///"),
        # 仅在开发环境打印SQL（通过环境变量控制）
        echo=os.getenv("SQL_DEBUG", "false").lower() == "true",
        poolclass=NullPool,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _emit_begin(conn):
        mode = conn.get_execution_options().get("sqlite_begin", "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")

    return engine


engine = build_engine()

# 创建异步会话
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)
