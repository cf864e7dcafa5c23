"""Threshold rules, pure evaluation, and the active-alert store."""

from __future__ import annotations

import operator
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Iterable, Sequence

from sysdock_telemetry.models import (
    CPU_ALERT_MESSAGE,
    DISK_ALERT_MESSAGE,
    MEMORY_ALERT_MESSAGE,
    MetricSnapshot,
)

from .logging_setup import get_logger
from .notifications import NotificationCenter, Severity, severity_for_message


_COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
}

logger = get_logger("alerts")


def metric_values(snapshot: MetricSnapshot, metric: str) -> list[float]:
    if metric == "cpu.usage":
        return [snapshot.cpu.usage_percent]
    if metric == "memory.percentage":
        return [snapshot.memory.percentage]
    if metric == "disk.percentage":
        return [d.percentage for d in snapshot.disks]
    if metric == "gpu.usage":
        return [] if snapshot.gpu.usage_percent is None else [snapshot.gpu.usage_percent]
    raise KeyError(f"unknown alert metric: {metric}")


@dataclass(frozen=True)
class AlertRule:
    metric: str
    comparator: str
    threshold: float
    message: str
    severity: Severity

    def __post_init__(self) -> None:
        if self.comparator not in _COMPARATORS:
            raise ValueError(f"unsupported comparator: {self.comparator}")

    def match(self, snapshot: MetricSnapshot, margin: float = 0.0) -> float | None:
        """Return the worst value satisfying the rule, or None.

        ``margin`` relaxes the threshold towards the safe side; it is used to
        hold an alert that is already active.
        """
        compare = _COMPARATORS[self.comparator]
        upward = self.comparator in (">", ">=")
        limit = self.threshold - margin if upward else self.threshold + margin
        hits = [v for v in metric_values(snapshot, self.metric) if compare(v, limit)]
        if not hits:
            return None
        return max(hits) if upward else min(hits)


@dataclass(frozen=True)
class ActiveAlert:
    message: str
    severity: Severity
    metric: str
    value: float | None
    threshold: float | None
    raised_at: datetime


def build_rules(
    cpu_threshold: float = 90.0,
    memory_threshold: float = 90.0,
    disk_threshold: float = 95.0,
) -> tuple[AlertRule, ...]:
    """Default rules in priority order: CPU, then memory, then any disk."""
    return (
        AlertRule("cpu.usage", ">", cpu_threshold, CPU_ALERT_MESSAGE, severity_for_message(CPU_ALERT_MESSAGE)),
        AlertRule(
            "memory.percentage",
            ">",
            memory_threshold,
            MEMORY_ALERT_MESSAGE,
            severity_for_message(MEMORY_ALERT_MESSAGE),
        ),
        AlertRule("disk.percentage", ">", disk_threshold, DISK_ALERT_MESSAGE, severity_for_message(DISK_ALERT_MESSAGE)),
    )


def evaluate(
    snapshot: MetricSnapshot,
    rules: Sequence[AlertRule],
    now: datetime | None = None,
) -> ActiveAlert | None:
    for rule in rules:
        value = rule.match(snapshot)
        if value is not None:
            return ActiveAlert(
                message=rule.message,
                severity=rule.severity,
                metric=rule.metric,
                value=value,
                threshold=rule.threshold,
                raised_at=now or datetime.now(timezone.utc),
            )
    return None


AlertListener = Callable[["ActiveAlert | None"], None]


class AlertEngine:
    """Owns the single active alert and forwards new ones to notifications.

    With ``hysteresis`` at 0 the alert follows every snapshot exactly, so a
    value hovering at the threshold sets and clears it on alternate ticks.
    """

    def __init__(
        self,
        rules: Sequence[AlertRule] | None = None,
        notifications: NotificationCenter | None = None,
        hysteresis: float = 0.0,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.rules: tuple[AlertRule, ...] = tuple(rules) if rules is not None else build_rules()
        self.notifications = notifications
        self.hysteresis = max(0.0, float(hysteresis))
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._active: ActiveAlert | None = None
        self._listeners: list[AlertListener] = []

    @property
    def active(self) -> ActiveAlert | None:
        return self._active

    def subscribe(self, listener: AlertListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def observe(self, snapshot: MetricSnapshot) -> ActiveAlert | None:
        candidate = evaluate(snapshot, self.rules, now=self._clock())
        held = self._held_alert(snapshot, candidate)
        self._set_active(held if held is not None else candidate)
        return self._active

    def observe_messages(self, messages: Iterable[str]) -> ActiveAlert | None:
        """Apply a provider-side evaluation; the first message wins."""
        first = next(iter(messages), None)
        if first is None:
            self._set_active(None)
            return None
        rule = next((r for r in self.rules if r.message == first), None)
        self._set_active(
            ActiveAlert(
                message=first,
                severity=rule.severity if rule else severity_for_message(first),
                metric=rule.metric if rule else "",
                value=None,
                threshold=rule.threshold if rule else None,
                raised_at=self._clock(),
            )
        )
        return self._active

    def reset(self) -> None:
        self._set_active(None)

    def close(self) -> None:
        self._active = None
        self._listeners.clear()

    def _held_alert(self, snapshot: MetricSnapshot, candidate: ActiveAlert | None) -> ActiveAlert | None:
        current = self._active
        if self.hysteresis <= 0 or current is None:
            return None
        if candidate is not None and candidate.message == current.message:
            return None
        rule = next((r for r in self.rules if r.message == current.message), None)
        if rule is None:
            return None
        if candidate is not None and self.rules.index(rule) > self._priority(candidate):
            return None
        return current if rule.match(snapshot, margin=self.hysteresis) is not None else None

    def _priority(self, alert: ActiveAlert) -> int:
        for idx, rule in enumerate(self.rules):
            if rule.message == alert.message:
                return idx
        return len(self.rules)

    def _set_active(self, alert: ActiveAlert | None) -> None:
        previous = self._active
        prev_msg = previous.message if previous else None
        new_msg = alert.message if alert else None
        if alert is not None and previous is not None and prev_msg == new_msg:
            # Still firing: keep the original raise time.
            alert = replace(alert, raised_at=previous.raised_at)
        self._active = alert
        if prev_msg == new_msg:
            return
        if alert is None:
            logger.info("alert cleared", extra={"event": "alert_cleared"})
        else:
            logger.info(alert.message, extra={"event": "alert_raised"})
            if self.notifications is not None:
                self.notifications.notify(alert.message, alert.severity)
        for listener in list(self._listeners):
            listener(alert)
