from .mood_entry import MoodEntry, mood_entries

__all__ = [
    "MoodEntry",
    "mood_entries",
]
