"""Mood rules shared by the validator and the table constraints."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Mood(str, Enum):
    SAD = "😢"
    NEUTRAL = "😐"
    HAPPY = "😊"
    VERY_HAPPY = "😄"
    LOVED = "😍"


@dataclass(frozen=True)
class MoodRules:
    """一份不可变的规则配置：应用层校验和表约束都从这里取值，避免两处字面量漂移。"""

    emojis: tuple[str, ...] = tuple(m.value for m in Mood)
    note_max_length: int = 500
    list_default_limit: int = 20
    list_max_limit: int = 100
    stats_default_days: int = 30

    def emoji_check_sql(self, column: str = "emoji") -> str:
        quoted = ", ".join("'" + e.replace("'", "''") + "'" for e in self.emojis)
        return f"{column} IN ({quoted})"

    def note_check_sql(self, column: str = "note") -> str:
        return f"{column} IS NULL OR length({column}) <= {self.note_max_length}"


MOOD_RULES = MoodRules()
