from .mood import (
    MoodDailyBreakdownItem,
    MoodDeleteResponse,
    MoodEntryResponse,
    MoodHealthResponse,
    MoodListResponse,
    MoodStatsResponse,
    StoreHealth,
)

__all__ = [
    "MoodDailyBreakdownItem",
    "MoodDeleteResponse",
    "MoodEntryResponse",
    "MoodHealthResponse",
    "MoodListResponse",
    "MoodStatsResponse",
    "StoreHealth",
]
