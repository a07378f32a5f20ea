"""Elapsed-time measurement against advisory budgets."""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterator

logger = logging.getLogger(__name__)

MOOD_ENTRY = "mood_entry"
ANALYTICS = "analytics"
DATABASE = "database"

DEFAULT_BUDGETS_MS: dict[str, float] = {
    MOOD_ENTRY: 100.0,
    ANALYTICS: 500.0,
    DATABASE: 50.0,
}


class OperationTimer:
    """简单计时器：用于计算操作耗时（ms）。"""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        self._start = time.perf_counter()
        self.duration_ms: float | None = None

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._start) * 1000

    def stop(self) -> float:
        if self.duration_ms is None:
            self.duration_ms = self.elapsed_ms()
        return self.duration_ms


@dataclass
class Metric:
    operation: str
    duration_ms: float
    within_budget: bool
    budget_ms: float | None = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    )


class PerformanceMonitor:
    """记录每次操作耗时并与预算比较。

    超出预算只写 warning 日志，永远不会抛错或中断被测操作。
    内存里只保留最近 `max_metrics` 条记录。
    """

    def __init__(self, budgets: dict[str, float] | None = None, *, max_metrics: int = 1000):
        self.budgets = dict(DEFAULT_BUDGETS_MS)
        if budgets:
            self.budgets.update(budgets)
        self.metrics: deque[Metric] = deque(maxlen=max_metrics)

    def start_timer(self, operation: str) -> OperationTimer:
        return OperationTimer(operation)

    def is_within_budget(self, operation: str, duration_ms: float) -> bool:
        budget = self.budgets.get(operation)
        return budget is None or duration_ms <= budget

    def end_timer(self, timer: OperationTimer) -> Metric:
        duration = timer.stop()
        budget = self.budgets.get(timer.operation)
        metric = Metric(
            operation=timer.operation,
            duration_ms=duration,
            within_budget=self.is_within_budget(timer.operation, duration),
            budget_ms=budget,
        )
        self.metrics.append(metric)

        if metric.within_budget:
            logger.debug("[PERF] %s: %.2fms (budget: %sms)", metric.operation, duration, budget)
        else:
            logger.warning(
                "[PERF] Performance budget exceeded: %s took %.2fms (budget: %sms)",
                metric.operation,
                duration,
                budget,
            )
        return metric

    @contextmanager
    def track(self, operation: str) -> Iterator[OperationTimer]:
        """包裹一次操作；无论成功或抛错都会落一条记录，异常原样上抛。"""
        timer = self.start_timer(operation)
        try:
            yield timer
        finally:
            self.end_timer(timer)

    def budget_report(self) -> dict[str, object]:
        violations = [m for m in self.metrics if not m.within_budget]
        total = len(self.metrics)
        return {
            "total_operations": total,
            "violations": len(violations),
            "violation_rate": (len(violations) / total) if total else 0.0,
            "details": violations,
        }
