from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, NamedTuple

from sqlalchemy import event, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import declarative_base

from .config import settings
from .utils.errors import StoreError, UniqueConstraintError, exception_summary

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()


def _quote_pragma_value(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def build_engine(
    database_url: str,
    *,
    encryption_key: str | None = None,
    echo: bool = False,
    **kwargs: Any,
) -> AsyncEngine:
    """创建异步引擎；SQLite 连接上会挂一个 connect 钩子做 PRAGMA 初始化。

    - key：SQLCipher 要求在任何其它语句之前设置；普通 SQLite 会静默忽略未知 PRAGMA
    - busy_timeout：降低并发写入下的 “database is locked”
    - WAL：后台写入 + 前端查询并行时读写互不阻塞
    """
    is_sqlite = str(database_url or "").startswith("sqlite")
    connect_args = kwargs.pop("connect_args", None)
    if connect_args is None:
        connect_args = {"timeout": 30} if is_sqlite else {}

    engine = create_async_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        future=True,
        connect_args=connect_args,
        **kwargs,
    )

    if is_sqlite:
        @event.listens_for(engine.sync_engine, "connect")
        def _set_sqlite_pragma(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            if encryption_key:
                cursor.execute(f"PRAGMA key = {_quote_pragma_value(encryption_key)};")
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA busy_timeout=30000;")
            cursor.close()

    return engine


def _is_unique_violation(exc: IntegrityError) -> bool:
    orig = getattr(exc, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if sqlstate == "23505":
        return True
    return "UNIQUE constraint failed" in str(orig if orig is not None else exc)


class ExecuteResult(NamedTuple):
    last_insert_id: int | None
    rows_affected: int


class MoodStore:
    """单表行存储：对上只暴露 execute / query_one / query_all 三个原语。

    加密（SQLCipher 密钥）完全在连接钩子里处理，调用方不接触密钥。
    唯一约束冲突以 `UniqueConstraintError` 单独抛出，其它数据库错误统一包装为 `StoreError`。
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.encryption_enabled = False

    async def connect(self) -> None:
        self._ensure_sqlite_dir()
        try:
            async with self.engine.connect() as conn:
                if self.engine.dialect.name == "sqlite":
                    result = await conn.execute(text("PRAGMA cipher_version"))
                    # 普通 SQLite 不认识该 PRAGMA，不返回结果集：视为未加密
                    row = result.first() if result.returns_rows else None
                    self.encryption_enabled = bool(row and row[0])
                else:
                    await conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            raise StoreError(f"Database connection failed: {exception_summary(e)}") from e

        if self.encryption_enabled:
            logger.info("[STORE] SQLCipher encryption enabled")
        else:
            logger.warning("[STORE] SQLCipher not available, using standard SQLite")

    async def initialize_schema(self) -> None:
        # 确保所有模型都已被导入，从而注册到 Base.metadata
        from . import models  # noqa: F401

        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
                await _ensure_schema(conn)
        except SQLAlchemyError as e:
            raise StoreError(f"Schema initialization failed: {exception_summary(e)}") from e

    async def close(self) -> None:
        await self.engine.dispose()

    async def execute(self, statement, params: Mapping[str, Any] | None = None) -> ExecuteResult:
        try:
            async with self.engine.begin() as conn:
                result = await conn.execute(statement, dict(params or {}))
                last_id = result.inserted_primary_key[0] if result.is_insert else None
                return ExecuteResult(last_insert_id=last_id, rows_affected=result.rowcount)
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise UniqueConstraintError(exception_summary(e.orig or e)) from e
            raise StoreError(exception_summary(e.orig or e)) from e
        except SQLAlchemyError as e:
            raise StoreError(exception_summary(e)) from e

    async def query_one(self, statement, params: Mapping[str, Any] | None = None) -> dict[str, Any] | None:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement, dict(params or {}))
                row = result.mappings().first()
        except SQLAlchemyError as e:
            raise StoreError(exception_summary(e)) from e
        return dict(row) if row is not None else None

    async def query_all(self, statement, params: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(statement, dict(params or {}))
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(exception_summary(e)) from e
        return [dict(r) for r in rows]

    def _ensure_sqlite_dir(self) -> None:
        url = self.engine.url
        if not url.drivername.startswith("sqlite"):
            return
        database = url.database or ""
        if not database or database == ":memory:" or database.startswith("file:"):
            return
        Path(database).parent.mkdir(parents=True, exist_ok=True)


async def _ensure_schema(conn) -> None:
    """补齐 create_all 不会自动创建的索引（IF NOT EXISTS 同时兼容 SQLite / PostgreSQL）。

    说明：
    - 列表接口按 date 倒序分页，日期范围筛选也走 date；数据量增长后没有索引会越来越慢
    """
    await conn.execute(
        text("CREATE INDEX IF NOT EXISTS idx_mood_entries_date ON mood_entries (date)")
    )


engine = build_engine(
    settings.database_url,
    encryption_key=settings.db_encryption_key,
    echo=settings.sql_echo,
)
store = MoodStore(engine)


async def init_db():
    """Initialize database tables"""
    await store.connect()
    await store.initialize_schema()
