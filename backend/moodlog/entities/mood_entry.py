"""Mood entry entity: field validation and storage/external projections."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date as date_type, datetime, timezone
from typing import Any, Mapping, NamedTuple

from ..rules import MOOD_RULES, MoodRules
from ..utils.errors import ValidationError

_DATE_RE = re.compile(r"[0-9]{4}-[0-9]{2}-[0-9]{2}")

DATE_REQUIRED = "Date is required"
DATE_FORMAT = "date must be in YYYY-MM-DD format"
DATE_CALENDAR = "date must be a real calendar date (YYYY-MM-DD)"
EMOJI_REQUIRED = "Emoji is required"


def utc_now_iso() -> str:
    """UTC 时间戳，毫秒精度 + `Z` 后缀（字符串可直接按字典序排序）。"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def matches_date_pattern(value: Any) -> bool:
    return isinstance(value, str) and _DATE_RE.fullmatch(value) is not None


def is_real_calendar_date(value: str) -> bool:
    """把 YYYY-MM-DD 拆开构造一次 date，再比对年月日，拒绝 2025-02-30 这类“溢出”日期。"""
    year, month, day = (int(part) for part in value.split("-"))
    try:
        built = date_type(year, month, day)
    except ValueError:
        return False
    return (built.year, built.month, built.day) == (year, month, day)


def is_valid_date_string(value: Any) -> bool:
    return matches_date_pattern(value) and is_real_calendar_date(value)


def check_date_param(value: Any) -> str | None:
    """路径参数里的日期检查：格式错误和日历错误给出不同提示；合法时返回 None。"""
    if not value:
        return "Date parameter is required"
    if not matches_date_pattern(value):
        return "Invalid date format. Use YYYY-MM-DD format"
    if not is_real_calendar_date(value):
        return "Invalid date. Please provide a valid date in YYYY-MM-DD format"
    return None


class InputCheck(NamedTuple):
    valid: bool
    errors: list[str]


@dataclass
class MoodEntryRecord:
    """一天一条的心情记录。

    构造即校验：所有不满足的规则会一次性收集，再以 `ValidationError` 抛出。
    空字符串 note 与缺省 note 统一归一化为 None；缺省时间戳取当前时间。
    """

    date: str | None = None
    emoji: str | None = None
    note: str | None = None
    id: int | None = None
    created_at: str | None = None
    updated_at: str | None = None
    rules: MoodRules = field(default=MOOD_RULES, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.note == "":
            self.note = None
        now = utc_now_iso()
        self.created_at = self.created_at or now
        self.updated_at = self.updated_at or now
        self.validate()

    def validate(self) -> None:
        errors: list[str] = []

        if not self.date:
            errors.append(DATE_REQUIRED)
        elif not matches_date_pattern(self.date):
            errors.append(DATE_FORMAT)
        elif not is_real_calendar_date(self.date):
            errors.append(DATE_CALENDAR)

        if not self.emoji:
            errors.append(EMOJI_REQUIRED)
        elif self.emoji not in self.rules.emojis:
            errors.append(f"emoji must be one of: {', '.join(self.rules.emojis)}")

        if self.note is not None:
            if not isinstance(self.note, str):
                errors.append("note must be a string")
            elif len(self.note) > self.rules.note_max_length:
                errors.append(f"note must be {self.rules.note_max_length} characters or less")

        if errors:
            raise ValidationError(errors)

    def to_storage(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "emoji": self.emoji,
            "note": self.note,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_public(self) -> dict[str, Any]:
        # 目前与存储视图一致；内部簿记字段出现时只需要在这里剔除
        return {
            "id": self.id,
            "date": self.date,
            "emoji": self.emoji,
            "note": self.note,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, rules: MoodRules = MOOD_RULES) -> "MoodEntryRecord":
        return cls(
            id=row["id"],
            date=row["date"],
            emoji=row["emoji"],
            note=row["note"],
            created_at=_as_text(row.get("created_at")),
            updated_at=_as_text(row.get("updated_at")),
            rules=rules,
        )

    @staticmethod
    def validate_input(data: Mapping[str, Any] | None, *, rules: MoodRules = MOOD_RULES) -> InputCheck:
        """边界层的粗粒度检查：先校验类型（非字符串直接拒绝，不做隐式转换），再跑完整业务规则。"""
        if not isinstance(data, Mapping):
            return InputCheck(False, ["Request body must be a valid JSON object"])

        errors: list[str] = []
        raw_date = data.get("date")
        raw_emoji = data.get("emoji")
        raw_note = data.get("note")

        if raw_date is None or raw_date == "":
            errors.append(DATE_REQUIRED)
        elif not isinstance(raw_date, str):
            errors.append("date must be a string")

        if raw_emoji is None or raw_emoji == "":
            errors.append(EMOJI_REQUIRED)
        elif not isinstance(raw_emoji, str):
            errors.append("emoji must be a string")

        if raw_note is not None and not isinstance(raw_note, str):
            errors.append("note must be a string")

        if errors:
            return InputCheck(False, errors)

        try:
            MoodEntryRecord(date=raw_date, emoji=raw_emoji, note=raw_note, rules=rules)
        except ValidationError as e:
            return InputCheck(False, e.errors)
        return InputCheck(True, [])


def _as_text(value: Any) -> str | None:
    # CURRENT_TIMESTAMP 默认值在部分驱动下会被解析成 datetime
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)
