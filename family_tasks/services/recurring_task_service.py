"""
Recurring Task Service

Expands a recurring task definition into concrete occurrences up to its end
date (or a bounded horizon when it has none).
"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import List, Optional

from family_tasks.config import Settings
from family_tasks.models.task import Task
from family_tasks.services.task_service import TaskService
from family_tasks.utils.metrics import MetricsCollector, metrics_collector
from family_tasks.utils.timezone import localize_wall_time, to_local, to_utc_naive

logger = logging.getLogger(__name__)


def add_months(value: datetime, months: int, day: Optional[int] = None) -> datetime:
    """
    Shift a datetime by whole months, clamping to the last day of short months.

    Args:
        value: Starting datetime
        months: Number of months to add
        day: Day of month to aim for; defaults to ``value.day``
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    max_day = calendar.monthrange(year, month)[1]
    return value.replace(year=year, month=month, day=min(day or value.day, max_day))


class RecurringTaskService:
    """Service to handle recurring task logic."""

    def __init__(
        self,
        task_service: TaskService,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.task_service = task_service
        self.settings = settings
        self.metrics = metrics or metrics_collector

    @staticmethod
    def calculate_next_occurrence(
        recurrence_pattern: str,
        current: datetime,
        anchor_day: Optional[int] = None,
    ) -> Optional[datetime]:
        """
        Calculate the next occurrence after ``current``.

        Args:
            recurrence_pattern: daily, weekly or monthly
            current: Previous occurrence (wall-clock time)
            anchor_day: Day of month the series started on; keeps a series
                that began on the 31st from drifting to the 28th after February

        Returns:
            Next occurrence, or None for an unrecognized pattern
        """
        if recurrence_pattern == "daily":
            return current + timedelta(days=1)
        elif recurrence_pattern == "weekly":
            return current + timedelta(weeks=1)
        elif recurrence_pattern == "monthly":
            return add_months(current, 1, day=anchor_day)
        return None

    def series_end(self, parent: Task) -> datetime:
        """Last instant an occurrence may fall on, as naive UTC."""
        if parent.recurrence_end_date:
            return parent.recurrence_end_date
        zone = self.settings.time_zone
        local_due = to_local(parent.due_date, zone).replace(tzinfo=None)
        horizon = add_months(local_due, self.settings.recurrence_horizon_months)
        return to_utc_naive(localize_wall_time(horizon, zone), zone)

    def expand_recurring_series(self, parent: Task) -> List[Task]:
        """
        Materialize the occurrences of a freshly created recurring task.

        Each occurrence copies title, description, assignee and priority,
        gets its own due date, and keeps the parent's reminder offset
        (a reminder one hour before due stays one hour before due).

        Args:
            parent: Persisted task with ``is_recurring`` set

        Returns:
            The created occurrences, in due-date order
        """
        if not parent.is_recurring or not parent.due_date or not parent.recurrence_pattern:
            logger.info(f"Task {parent.id} is not a complete recurring definition, nothing to expand")
            return []

        zone = self.settings.time_zone
        end = self.series_end(parent)
        reminder_offset = None
        if parent.reminder_time:
            reminder_offset = parent.due_date - parent.reminder_time

        # Step on local wall-clock time so 18:00 stays 18:00 across DST changes
        current = to_local(parent.due_date, zone).replace(tzinfo=None)
        anchor_day = current.day
        occurrences: List[Task] = []

        while True:
            next_local = self.calculate_next_occurrence(parent.recurrence_pattern, current, anchor_day)
            if next_local is None:
                logger.warning(
                    f"Unknown recurrence pattern '{parent.recurrence_pattern}' on task {parent.id}, stopping expansion"
                )
                break

            next_due = to_utc_naive(localize_wall_time(next_local, zone), zone)
            if next_due > end:
                break

            occurrence = Task(
                title=parent.title,
                description=parent.description,
                assigned_to=parent.assigned_to,
                priority=parent.priority,
                due_date=next_due,
                reminder_time=next_due - reminder_offset if reminder_offset is not None else None,
                is_recurring=False,
                parent_task_id=parent.id,
            )
            occurrences.append(self.task_service.insert_task(occurrence))
            current = next_local

        if occurrences:
            self.metrics.occurrence_created(len(occurrences))
        logger.info(f"Created {len(occurrences)} occurrences for recurring task {parent.id}")
        return occurrences
