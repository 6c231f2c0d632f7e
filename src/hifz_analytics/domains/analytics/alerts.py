# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Alert engine.

Alert rules evaluate precomputed metrics against configured thresholds.
Each rule scans one metrics list and produces at most one alert per
entity. The engine concatenates the rule outputs and orders them by
severity (critical first), then by creation time (newest first).

Alert ids carry the run timestamp and are only unique within a run.
Persistence reconciles on dedup_key, which is (type, entity_id), so the
same condition seen on consecutive runs maps to the same stored alert.

Usage:
    from hifz_analytics.domains.analytics.alerts import generate_alerts

    alerts = generate_alerts(students, teachers, classes, settings=settings, now=now)
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, ClassVar, Generic, TypeVar

from hifz_analytics.core.config.settings import AnalyticsSettings
from hifz_analytics.domains.analytics.class_metrics import calculate_all_class_metrics
from hifz_analytics.domains.analytics.context import AnalyticsDataContext, TimeRange
from hifz_analytics.domains.analytics.models import ClassMetrics, StudentMetrics, TeacherMetrics
from hifz_analytics.domains.analytics.student_metrics import calculate_all_student_metrics
from hifz_analytics.domains.analytics.teacher_metrics import calculate_all_teacher_metrics
from hifz_analytics.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class AlertType(str, Enum):
    """Types of analytics alerts."""

    MISSED_SESSIONS = "missed_sessions_threshold"
    PACE_DROP = "memorization_pace_drop"
    HIGH_AT_RISK_CONCENTRATION = "high_at_risk_concentration"
    CLASS_OVERCAPACITY = "class_overcapacity"
    EXCESSIVE_CANCELLATIONS = "excessive_teacher_cancellations"


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Ordering weight, higher is more severe."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    AlertSeverity.LOW: 1,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.HIGH: 3,
    AlertSeverity.CRITICAL: 4,
}


class AlertStatus(str, Enum):
    """Alert lifecycle states. Only ACTIVE is set by the engine."""

    ACTIVE = "active"
    ACKNOWLEDGED = "acknowledged"
    RESOLVED = "resolved"


class EntityType(str, Enum):
    """Kinds of entity an alert can be about."""

    STUDENT = "student"
    TEACHER = "teacher"
    CLASS = "class"


@dataclass
class AnalyticsAlert:
    """An alert produced by one run.

    Attributes:
        id: Run-scoped identifier "{type}_{entity_id}_{timestamp}".
        type: Alert type.
        severity: Severity level.
        entity_id: Student, teacher or class the alert is about.
        entity_type: Kind of entity.
        entity_name: Display name of the entity.
        title: Short human-readable title.
        description: Message including the recommended action.
        threshold: Threshold the value was compared against.
        current_value: Observed value that triggered the alert.
        created_at: Run instant.
        status: Lifecycle state, always ACTIVE when generated.
        metadata: Rule-specific details, including the "action" text.
    """

    id: str
    type: AlertType
    severity: AlertSeverity
    entity_id: str
    entity_type: EntityType
    entity_name: str
    title: str
    description: str
    threshold: float
    current_value: float
    created_at: datetime
    status: AlertStatus = AlertStatus.ACTIVE
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Identity used when reconciling against stored alerts."""
        return (self.type.value, self.entity_id)

    @property
    def action_recommendation(self) -> str:
        """Recommended action, empty when the rule has none."""
        return str(self.metadata.get("action", ""))

    def to_row(self, run_date: date) -> dict[str, Any]:
        """Convert to a payload for the analytics_alerts table.

        Args:
            run_date: Date of the run that produced the alert.

        Returns:
            Dictionary matching the analytics_alerts columns.
        """
        return {
            "id": self.id,
            "date": run_date,
            "type": self.type.value,
            "severity": self.severity.value,
            "status": self.status.value,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "entity_type": self.entity_type.value,
            "title": self.title,
            "description": self.description,
            "threshold": self.threshold,
            "current_value": self.current_value,
            "action_recommendation": self.action_recommendation,
            "created_at": self.created_at,
            "metadata": dict(self.metadata),
        }


def should_trigger_alert(
    current_value: float,
    threshold: float,
    alert_type: AlertType | str,
) -> bool:
    """Compare a value against a threshold for a known alert type.

    Every alert type fires when the value reaches the threshold.
    Unknown types never fire.
    """
    if not any(alert_type == t.value for t in AlertType):
        return False
    return current_value >= threshold


M = TypeVar("M", StudentMetrics, TeacherMetrics, ClassMetrics)


class AlertRule(ABC, Generic[M]):
    """Base class for alert rules.

    Subclasses declare the alert type, severity, entity type and the
    AnalyticsSettings field holding their threshold, and implement
    check() for a single metrics record.
    """

    alert_type: ClassVar[AlertType]
    severity: ClassVar[AlertSeverity]
    entity_type: ClassVar[EntityType]
    threshold_setting: ClassVar[str]
    title: ClassVar[str]
    action: ClassVar[str]

    def __init__(self, threshold: float) -> None:
        """Initialize the rule.

        Args:
            threshold: Value at which the rule fires.
        """
        self.threshold = threshold

    @classmethod
    def from_settings(cls, settings: AnalyticsSettings) -> "AlertRule[M]":
        """Build the rule with its threshold taken from settings."""
        return cls(float(getattr(settings, cls.threshold_setting)))

    @abstractmethod
    def check(self, metrics: M, now: datetime) -> AnalyticsAlert | None:
        """Evaluate one metrics record.

        Args:
            metrics: Metrics for one entity.
            now: Run instant.

        Returns:
            An alert if the rule fires, None otherwise.
        """
        ...

    def evaluate(self, metrics: Iterable[M], now: datetime) -> list[AnalyticsAlert]:
        """Evaluate every record in one pass."""
        return [alert for m in metrics if (alert := self.check(m, now)) is not None]

    def build_alert(
        self,
        *,
        entity_id: str,
        entity_name: str,
        summary: str,
        current_value: float,
        now: datetime,
        metadata: dict[str, Any],
    ) -> AnalyticsAlert:
        """Assemble an alert with the rule's type, severity and action."""
        stamp = int(now.timestamp() * 1000)
        return AnalyticsAlert(
            id=f"{self.alert_type.value}_{entity_id}_{stamp}",
            type=self.alert_type,
            severity=self.severity,
            entity_id=entity_id,
            entity_type=self.entity_type,
            entity_name=entity_name,
            title=self.title,
            description=f"{entity_name} {summary}. Action: {self.action}.",
            threshold=self.threshold,
            current_value=current_value,
            created_at=now,
            metadata={**metadata, "action": self.action},
        )


class MissedSessionsRule(AlertRule[TeacherMetrics]):
    """Teacher with too many missed or late sessions."""

    alert_type = AlertType.MISSED_SESSIONS
    severity = AlertSeverity.HIGH
    entity_type = EntityType.TEACHER
    threshold_setting = "missed_sessions_threshold"
    title = "High Number of Missed Sessions"
    action = "Address attendance issues, review policies, provide support"

    def check(self, metrics: TeacherMetrics, now: datetime) -> AnalyticsAlert | None:
        missed = metrics.missed_or_late_sessions
        if not should_trigger_alert(missed, self.threshold, self.alert_type):
            return None
        return self.build_alert(
            entity_id=metrics.teacher_id,
            entity_name=metrics.teacher_name,
            summary=f"has {missed} missed or late sessions",
            current_value=missed,
            now=now,
            metadata={
                "teacher_id": metrics.teacher_id,
                "sessions_conducted": metrics.sessions.conducted,
                "sessions_scheduled": metrics.sessions.scheduled,
            },
        )


class PaceDropRule(AlertRule[StudentMetrics]):
    """Student whose pages this week fall well below their average pace."""

    alert_type = AlertType.PACE_DROP
    severity = AlertSeverity.MEDIUM
    entity_type = EntityType.STUDENT
    threshold_setting = "pace_drop_threshold"
    title = "Memorization Pace Drop Detected"
    action = "Contact student/parent, review progress, check external factors"

    def check(self, metrics: StudentMetrics, now: datetime) -> AnalyticsAlert | None:
        current = metrics.pages.weekly
        average = metrics.pace.pages_per_week
        if average <= 0 or current >= average * (1 - self.threshold / 100):
            return None

        drop = round((average - current) / average * 100, 2)
        return self.build_alert(
            entity_id=metrics.student_id,
            entity_name=metrics.student_name,
            summary=f"pace dropped by {round(drop)}%",
            current_value=drop,
            now=now,
            metadata={
                "student_id": metrics.student_id,
                "current_pace": current,
                "average_pace": average,
            },
        )


class AtRiskConcentrationRule(AlertRule[TeacherMetrics]):
    """Teacher with many at-risk students assigned."""

    alert_type = AlertType.HIGH_AT_RISK_CONCENTRATION
    severity = AlertSeverity.HIGH
    entity_type = EntityType.TEACHER
    threshold_setting = "at_risk_concentration_threshold"
    title = "High At-Risk Student Concentration"
    action = "Review teacher workload, provide additional support, consider reassignment"

    def check(self, metrics: TeacherMetrics, now: datetime) -> AnalyticsAlert | None:
        at_risk = metrics.at_risk_students_count
        if not should_trigger_alert(at_risk, self.threshold, self.alert_type):
            return None
        return self.build_alert(
            entity_id=metrics.teacher_id,
            entity_name=metrics.teacher_name,
            summary=f"has {at_risk} at-risk students assigned",
            current_value=at_risk,
            now=now,
            metadata={
                "teacher_id": metrics.teacher_id,
                "total_students": metrics.student_count,
            },
        )


class ClassOvercapacityRule(AlertRule[ClassMetrics]):
    """Class at or near its capacity."""

    alert_type = AlertType.CLASS_OVERCAPACITY
    severity = AlertSeverity.MEDIUM
    entity_type = EntityType.CLASS
    threshold_setting = "overcapacity_threshold"
    title = "Class Overcapacity Alert"
    action = "Split class, increase capacity, or create new section"

    def check(self, metrics: ClassMetrics, now: datetime) -> AnalyticsAlert | None:
        utilization = metrics.capacity_utilization
        if not should_trigger_alert(utilization, self.threshold, self.alert_type):
            return None
        return self.build_alert(
            entity_id=metrics.class_id,
            entity_name=metrics.class_name,
            summary=f"is at {round(utilization)}% capacity",
            current_value=utilization,
            now=now,
            metadata={
                "class_id": metrics.class_id,
                "student_count": metrics.student_count,
                "capacity": metrics.capacity,
            },
        )


class ExcessiveCancellationsRule(AlertRule[TeacherMetrics]):
    """Teacher cancelling too many sessions per week."""

    alert_type = AlertType.EXCESSIVE_CANCELLATIONS
    severity = AlertSeverity.HIGH
    entity_type = EntityType.TEACHER
    threshold_setting = "cancellation_threshold"
    title = "Excessive Session Cancellations"
    action = "Review scheduling, address root cause, consider backup plans"

    def check(self, metrics: TeacherMetrics, now: datetime) -> AnalyticsAlert | None:
        frequency = metrics.cancellation_frequency
        if not should_trigger_alert(frequency, self.threshold, self.alert_type):
            return None
        return self.build_alert(
            entity_id=metrics.teacher_id,
            entity_name=metrics.teacher_name,
            summary=f"has {frequency:.1f} cancellations per week",
            current_value=frequency,
            now=now,
            metadata={
                "teacher_id": metrics.teacher_id,
                "missed_sessions": metrics.missed_or_late_sessions,
            },
        )


DEFAULT_RULES: tuple[type[AlertRule[Any]], ...] = (
    MissedSessionsRule,
    PaceDropRule,
    AtRiskConcentrationRule,
    ClassOvercapacityRule,
    ExcessiveCancellationsRule,
)


def sort_alerts(alerts: Iterable[AnalyticsAlert]) -> list[AnalyticsAlert]:
    """Order by severity descending, then created_at descending.

    The sort is stable, so ties keep their generation order.
    """
    return sorted(
        alerts,
        key=lambda a: (-a.severity.rank, -a.created_at.timestamp()),
    )


def generate_alerts(
    student_metrics: Sequence[StudentMetrics],
    teacher_metrics: Sequence[TeacherMetrics],
    class_metrics: Sequence[ClassMetrics],
    *,
    settings: AnalyticsSettings | None = None,
    now: datetime | None = None,
) -> list[AnalyticsAlert]:
    """Evaluate the default rules against precomputed metrics.

    Args:
        student_metrics: Metrics for active students.
        teacher_metrics: Metrics for teachers.
        class_metrics: Metrics for active classes.
        settings: Thresholds. Defaults to AnalyticsSettings().
        now: Run instant.

    Returns:
        Alerts ordered by severity then recency.
    """
    settings = settings or AnalyticsSettings()
    now = now or utc_now()

    inputs: dict[EntityType, Sequence[Any]] = {
        EntityType.STUDENT: student_metrics,
        EntityType.TEACHER: teacher_metrics,
        EntityType.CLASS: class_metrics,
    }

    alerts: list[AnalyticsAlert] = []
    for rule_class in DEFAULT_RULES:
        rule = rule_class.from_settings(settings)
        fired = rule.evaluate(inputs[rule.entity_type], now)
        if fired:
            logger.debug("Rule %s fired %d alerts", rule.alert_type.value, len(fired))
        alerts.extend(fired)

    return sort_alerts(alerts)


def generate_all_alerts(
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
) -> list[AnalyticsAlert]:
    """Compute all metrics from a snapshot and evaluate the alert rules.

    Pure with respect to the snapshot: nothing is read or written
    outside the context. The window defaults to the trailing
    alert_window_days days.
    """
    settings = settings or AnalyticsSettings()
    now = now or utc_now()
    time_range = time_range or TimeRange(
        start=now - timedelta(days=settings.alert_window_days), end=now
    )

    students = calculate_all_student_metrics(context, time_range, now=now, settings=settings)
    by_student = {m.student_id: m for m in students}
    teachers = calculate_all_teacher_metrics(
        context, time_range, now=now, settings=settings, student_metrics=by_student
    )
    classes = calculate_all_class_metrics(
        context, time_range, now=now, settings=settings, student_metrics=by_student
    )

    return generate_alerts(students, teachers, classes, settings=settings, now=now)
