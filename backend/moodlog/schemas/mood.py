from pydantic import BaseModel, Field


class MoodEntryResponse(BaseModel):
    """心情记录响应模型"""
    id: int
    date: str
    emoji: str
    note: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    class Config:
        from_attributes = True


class MoodListResponse(BaseModel):
    """分页列表：moods + 筛选后的总数，前端据此计算翻页。"""

    moods: list[MoodEntryResponse] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = Field(0, serialization_alias="totalPages")


class MoodDeleteResponse(BaseModel):
    message: str = "Mood entry deleted successfully"
    date: str
    deleted: bool = True
    deleted_entry: MoodEntryResponse = Field(serialization_alias="deletedEntry")


class MoodDailyBreakdownItem(BaseModel):
    date: str
    emoji: str
    count: int


class MoodStatsResponse(BaseModel):
    """统计窗口内的表情分布（emoji -> 条数）与按日明细。"""

    total_entries: int = Field(0, serialization_alias="totalEntries")
    distribution: dict[str, int] = Field(default_factory=dict)
    daily_breakdown: list[MoodDailyBreakdownItem] = Field(
        default_factory=list, serialization_alias="dailyBreakdown"
    )
    period: int = 30


class StoreHealth(BaseModel):
    status: str
    encryption: str | None = None
    error: str | None = None


class MoodHealthResponse(BaseModel):
    status: str = "ok"
    database: StoreHealth
    timestamp: str
