from __future__ import annotations

import re
from typing import Any


_CONTROL_RE = re.compile(r"[\r\n\t]+")

DUPLICATE_SUGGESTION = "Consider updating, editing, or deleting the existing entry first"


def _sanitize_text(text: str, *, max_len: int) -> str:
    """把异常文本压缩成更适合日志/响应的短字符串（避免换行、控制字符、超长）。"""
    if max_len <= 0:
        return ""
    cleaned = _CONTROL_RE.sub(" ", text).strip()
    if len(cleaned) > max_len:
        return f"{cleaned[:max_len]}…"
    return cleaned


def exception_summary(exc: BaseException, *, max_len: int = 200) -> str:
    """生成对外更安全的异常摘要：默认仅保留异常类型 + 截断后的消息。"""
    name = type(exc).__name__
    msg = _sanitize_text(str(exc), max_len=max_len)
    return f"{name}: {msg}" if msg else name


class MoodError(Exception):
    """所有可由调用方处理的错误的基类；`kind` 供上层按类型分流，而不是匹配消息文本。"""

    kind = "MoodError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "error": self.message}


class ValidationError(MoodError):
    kind = "ValidationError"

    def __init__(self, errors: list[str] | str):
        if isinstance(errors, str):
            errors = [errors]
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["details"] = list(self.errors)
        return data


class DuplicateDateError(MoodError):
    kind = "DuplicateDateError"

    def __init__(self, date: str, suggestion: str = DUPLICATE_SUGGESTION):
        super().__init__(f"Mood entry for {date} already exists")
        self.date = date
        self.suggestion = suggestion

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data.update(date=self.date, suggestion=self.suggestion)
        return data


class NotFoundError(MoodError):
    kind = "NotFoundError"

    def __init__(self, date: str):
        super().__init__(f"Mood entry for {date} not found")
        self.date = date

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["date"] = self.date
        return data


class StoreError(MoodError):
    """存储层的不透明失败（连接丢失、约束失败等）；核心层不做恢复，原样上抛。"""

    kind = "StoreError"


class UniqueConstraintError(StoreError):
    """唯一约束冲突：与其它存储错误区分开，仓储层会把它重映射为 DuplicateDateError。"""

    kind = "StoreError"
