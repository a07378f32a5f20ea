"""Mood entry repository: validation + store orchestration."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, timedelta, timezone
from typing import Any, Mapping

from sqlalchemy import delete, func, insert, select, text

from ..database import MoodStore
from ..entities.mood_entry import MoodEntryRecord, check_date_param, is_valid_date_string
from ..models import mood_entries
from ..rules import MOOD_RULES, MoodRules
from ..utils.errors import (
    DuplicateDateError,
    NotFoundError,
    StoreError,
    UniqueConstraintError,
    ValidationError,
)
from ..utils.performance import ANALYTICS, DATABASE, MOOD_ENTRY, PerformanceMonitor

logger = logging.getLogger(__name__)


@dataclass
class MoodPage:
    moods: list[MoodEntryRecord]
    total: int
    page: int
    limit: int
    total_pages: int


@dataclass
class MoodStatistics:
    total_entries: int
    distribution: dict[str, int]
    daily_breakdown: list[dict[str, Any]] = field(default_factory=list)
    period: int = 30


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


class MoodRepository:
    """心情记录的唯一写入口：create / delete 是仅有的两个变更原语（update = delete + create）。

    唯一性说明：
    - create 前的按日期查询只是优化，用来给出友好的 409；
    - 真正的安全保证是表上的 UNIQUE(date)：并发 create 时插入冲突会被捕获并重映射为 DuplicateDateError。
    """

    def __init__(
        self,
        store: MoodStore,
        *,
        rules: MoodRules = MOOD_RULES,
        monitor: PerformanceMonitor | None = None,
    ):
        self.store = store
        self.rules = rules
        self.monitor = monitor or PerformanceMonitor()

    def _build_record(self, candidate: Mapping[str, Any] | MoodEntryRecord) -> MoodEntryRecord:
        if isinstance(candidate, MoodEntryRecord):
            candidate.validate()
            return candidate
        if not isinstance(candidate, Mapping):
            raise ValidationError("Request body must be a valid JSON object")
        return MoodEntryRecord(
            id=candidate.get("id"),
            date=candidate.get("date"),
            emoji=candidate.get("emoji"),
            note=candidate.get("note"),
            created_at=candidate.get("created_at"),
            updated_at=candidate.get("updated_at"),
            rules=self.rules,
        )

    async def create(self, candidate: Mapping[str, Any] | MoodEntryRecord) -> MoodEntryRecord:
        with self.monitor.track(MOOD_ENTRY):
            # 校验失败时不会触达存储
            record = self._build_record(candidate)

            existing = await self._find_by_date(record.date)
            if existing is not None:
                raise DuplicateDateError(record.date)

            values = record.to_storage()
            values.pop("id", None)
            try:
                result = await self.store.execute(insert(mood_entries).values(**values))
            except UniqueConstraintError as e:
                logger.info("[MOODS] Unique constraint hit for %s, reporting duplicate", record.date)
                raise DuplicateDateError(record.date) from e

            record.id = result.last_insert_id
            logger.info("[MOODS] Created mood entry id=%s date=%s", record.id, record.date)
            return record

    async def get_by_date(self, date: str) -> MoodEntryRecord | None:
        """按日期精确查找；不存在时返回 None（不是错误）。"""
        with self.monitor.track(ANALYTICS):
            return await self._find_by_date(date)

    async def _find_by_date(self, date: str) -> MoodEntryRecord | None:
        row = await self.store.query_one(
            select(mood_entries).where(mood_entries.c.date == date)
        )
        if row is None:
            return None
        return MoodEntryRecord.from_row(row, rules=self.rules)

    def _check_list_options(
        self,
        limit: Any,
        page: Any,
        date_from: str | None,
        date_to: str | None,
    ) -> None:
        errors: list[str] = []

        if not _is_int(limit) or not 1 <= limit <= self.rules.list_max_limit:
            errors.append(f"Limit must be between 1 and {self.rules.list_max_limit}")
        if not _is_int(page) or page < 1:
            errors.append("Page must be 1 or greater")
        if date_from is not None and not is_valid_date_string(date_from):
            errors.append("From date must be in YYYY-MM-DD format")
        if date_to is not None and not is_valid_date_string(date_to):
            errors.append("To date must be in YYYY-MM-DD format")
        if date_from and date_to and date_from > date_to:
            errors.append("From date cannot be after to date")

        if errors:
            raise ValidationError(errors)

    async def list(
        self,
        *,
        limit: int | None = None,
        page: int | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
    ) -> MoodPage:
        """分页列表：按 date 倒序；total 是筛选后的总数；越界页返回空列表而不是报错。"""
        limit = self.rules.list_default_limit if limit is None else limit
        page = 1 if page is None else page
        date_from = date_from or None
        date_to = date_to or None

        with self.monitor.track(ANALYTICS):
            self._check_list_options(limit, page, date_from, date_to)

            conditions = []
            if date_from is not None:
                conditions.append(mood_entries.c.date >= date_from)
            if date_to is not None:
                conditions.append(mood_entries.c.date <= date_to)

            count_row = await self.store.query_one(
                select(func.count().label("total")).select_from(mood_entries).where(*conditions)
            )
            total = int(count_row["total"]) if count_row else 0

            offset = (page - 1) * limit
            rows = await self.store.query_all(
                select(mood_entries)
                .where(*conditions)
                .order_by(mood_entries.c.date.desc())
                .limit(limit)
                .offset(offset)
            )

            return MoodPage(
                moods=[MoodEntryRecord.from_row(r, rules=self.rules) for r in rows],
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
            )

    async def delete_by_date(self, date: str) -> MoodEntryRecord:
        """删除并返回删除前的快照；不存在（包括重复删除）时抛 NotFoundError。"""
        with self.monitor.track(MOOD_ENTRY):
            existing = await self._find_by_date(date)
            if existing is None:
                raise NotFoundError(date)

            result = await self.store.execute(
                delete(mood_entries).where(mood_entries.c.date == date)
            )
            # 查询与删除之间被并发删除时同样视为不存在
            if result.rows_affected == 0:
                raise NotFoundError(date)

            logger.info("[MOODS] Deleted mood entry id=%s date=%s", existing.id, date)
            return existing

    async def update(self, date: str, candidate: Mapping[str, Any]) -> MoodEntryRecord:
        """更新 = 删除 + 以同一日期重新创建（会得到新的 id 与 created_at）。

        先校验新内容再删除，避免非法输入把旧记录删掉。
        """
        date_error = check_date_param(date)
        if date_error:
            raise ValidationError(date_error)
        if not isinstance(candidate, Mapping):
            raise ValidationError("Request body must be a valid JSON object")

        data = {"date": date, "emoji": candidate.get("emoji"), "note": candidate.get("note")}
        self._build_record(data)

        await self.delete_by_date(date)
        return await self.create(data)

    async def statistics(self, days: int | None = None, *, today: date_type | None = None) -> MoodStatistics:
        """最近 `days` 天（含截止日）的表情分布与按日明细。"""
        days = self.rules.stats_default_days if days is None else days
        if not _is_int(days) or days < 1:
            raise ValidationError("Days must be a positive integer")

        with self.monitor.track(ANALYTICS):
            today = today or datetime.now(timezone.utc).date()
            cutoff = (today - timedelta(days=days)).isoformat()

            rows = await self.store.query_all(
                select(
                    mood_entries.c.emoji,
                    func.count().label("count"),
                    mood_entries.c.date,
                )
                .where(mood_entries.c.date >= cutoff)
                .group_by(mood_entries.c.emoji, mood_entries.c.date)
                .order_by(mood_entries.c.date.desc(), mood_entries.c.emoji)
            )

            distribution: dict[str, int] = {}
            total_entries = 0
            breakdown: list[dict[str, Any]] = []
            for row in rows:
                count = int(row["count"])
                distribution[row["emoji"]] = distribution.get(row["emoji"], 0) + count
                total_entries += count
                breakdown.append({"date": row["date"], "emoji": row["emoji"], "count": count})

            return MoodStatistics(
                total_entries=total_entries,
                distribution=distribution,
                daily_breakdown=breakdown,
                period=days,
            )

    async def health_check(self) -> dict[str, str]:
        """对存储做一次 SELECT 1 往返；任何存储错误都转成 unhealthy 结果，不向外抛。"""
        with self.monitor.track(DATABASE):
            try:
                await self.store.query_one(text("SELECT 1 AS ok"))
            except StoreError as e:
                logger.warning("[HEALTH] Store check failed: %s", e.message)
                return {"status": "unhealthy", "error": e.message}

        encryption = "enabled" if self.store.encryption_enabled else "disabled"
        return {"status": "healthy", "encryption": encryption}
