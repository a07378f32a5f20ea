from .mood_repository import MoodPage, MoodRepository, MoodStatistics

__all__ = ["MoodPage", "MoodRepository", "MoodStatistics"]
