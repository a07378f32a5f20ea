"""Mood entry API"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Query

from ..config import settings
from ..database import store
from ..entities.mood_entry import MoodEntryRecord, check_date_param, utc_now_iso
from ..schemas import (
    MoodDailyBreakdownItem,
    MoodDeleteResponse,
    MoodEntryResponse,
    MoodHealthResponse,
    MoodListResponse,
    MoodStatsResponse,
    StoreHealth,
)
from ..services import MoodRepository
from ..utils.errors import DuplicateDateError, NotFoundError, ValidationError
from ..utils.performance import PerformanceMonitor

router = APIRouter(prefix="/moods", tags=["moods"])
logger = logging.getLogger(__name__)

monitor = PerformanceMonitor(settings.performance_budgets())
repository = MoodRepository(store, monitor=monitor)


def get_repository() -> MoodRepository:
    return repository


def _require_date(date: str) -> str:
    error = check_date_param(date)
    if error:
        raise HTTPException(status_code=400, detail=ValidationError(error).to_dict())
    return date


def _validation_detail(errors: list[str]) -> dict[str, Any]:
    return ValidationError(errors).to_dict()


def _body_fields(payload: dict[str, Any]) -> dict[str, Any]:
    # 只接收业务字段；id/时间戳由存储层生成
    return {"date": payload.get("date"), "emoji": payload.get("emoji"), "note": payload.get("note")}


@router.post("", response_model=MoodEntryResponse, status_code=201)
async def create_mood(
    payload: Any = Body(None),
    repo: MoodRepository = Depends(get_repository),
):
    """创建某一天的心情记录（同一天只能有一条）"""
    check = MoodEntryRecord.validate_input(payload)
    if not check.valid:
        raise HTTPException(status_code=400, detail=_validation_detail(check.errors))

    try:
        record = await repo.create(_body_fields(payload))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e
    except DuplicateDateError as e:
        raise HTTPException(
            status_code=409,
            detail=e.to_dict(),
        ) from e

    return MoodEntryResponse.model_validate(record)


@router.get("", response_model=MoodListResponse)
async def list_moods(
    limit: int | None = Query(None, description="每页条数（1-100，默认 20）"),
    page: int | None = Query(None, description="页码（从 1 开始）"),
    date_from: str | None = Query(None, alias="from", description="起始日期 YYYY-MM-DD（含）"),
    date_to: str | None = Query(None, alias="to", description="结束日期 YYYY-MM-DD（含）"),
    repo: MoodRepository = Depends(get_repository),
):
    """分页列出心情记录（按日期倒序）"""
    try:
        result = await repo.list(limit=limit, page=page, date_from=date_from, date_to=date_to)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e

    return MoodListResponse(
        moods=[MoodEntryResponse.model_validate(m) for m in result.moods],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.get("/health/check", response_model=MoodHealthResponse)
async def mood_store_health(repo: MoodRepository = Depends(get_repository)):
    """存储健康检查（含加密状态）"""
    health = await repo.health_check()
    timestamp = utc_now_iso()
    if health.get("status") != "healthy":
        raise HTTPException(
            status_code=503,
            detail={"status": "error", "database": health, "timestamp": timestamp},
        )
    return MoodHealthResponse(database=StoreHealth(**health), timestamp=timestamp)


@router.get("/stats/summary", response_model=MoodStatsResponse)
async def mood_statistics(
    days: int = Query(30, ge=1, le=3650, description="统计窗口（天）"),
    repo: MoodRepository = Depends(get_repository),
):
    """最近 N 天的心情分布"""
    try:
        stats = await repo.statistics(days)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e

    return MoodStatsResponse(
        total_entries=stats.total_entries,
        distribution=stats.distribution,
        daily_breakdown=[MoodDailyBreakdownItem(**item) for item in stats.daily_breakdown],
        period=stats.period,
    )


@router.get("/{date}", response_model=MoodEntryResponse)
async def get_mood(date: str, repo: MoodRepository = Depends(get_repository)):
    """按日期获取心情记录"""
    date = _require_date(date)
    record = await repo.get_by_date(date)
    if record is None:
        raise HTTPException(status_code=404, detail=NotFoundError(date).to_dict())
    return MoodEntryResponse.model_validate(record)


@router.put("/{date}", response_model=MoodEntryResponse)
async def update_mood(
    date: str,
    payload: Any = Body(None),
    repo: MoodRepository = Depends(get_repository),
):
    """替换某一天的心情记录（删除后以同一日期重新创建）"""
    date = _require_date(date)
    body = dict(payload) if isinstance(payload, dict) else payload
    if isinstance(body, dict):
        body["date"] = date
    check = MoodEntryRecord.validate_input(body)
    if not check.valid:
        raise HTTPException(status_code=400, detail=_validation_detail(check.errors))

    try:
        record = await repo.update(date, _body_fields(body))
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.to_dict()) from e
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.to_dict()) from e
    except DuplicateDateError as e:
        # 删除与重建之间被其它请求抢先写入
        raise HTTPException(
            status_code=409,
            detail=e.to_dict(),
        ) from e

    return MoodEntryResponse.model_validate(record)


@router.delete("/{date}", response_model=MoodDeleteResponse)
async def delete_mood(date: str, repo: MoodRepository = Depends(get_repository)):
    """删除某一天的心情记录，返回被删除的内容"""
    date = _require_date(date)
    try:
        removed = await repo.delete_by_date(date)
    except NotFoundError as e:
        raise HTTPException(
            status_code=404,
            detail={**e.to_dict(), "deleted": False},
        ) from e

    return MoodDeleteResponse(date=date, deleted_entry=MoodEntryResponse.model_validate(removed))
