"""Reminder Scheduler Service."""
import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from family_tasks.config import Settings
from family_tasks.errors import NotificationError
from family_tasks.models.task import Task
from family_tasks.services.notification_ledger import NotificationLedger
from family_tasks.services.notification_service import NotificationService
from family_tasks.services.task_service import TaskService
from family_tasks.utils.logger import get_logger
from family_tasks.utils.metrics import MetricsCollector, metrics_collector
from family_tasks.utils.timezone import local_now, to_utc_naive

logger = logging.getLogger(__name__)
events = get_logger("family_tasks.scheduler")


@dataclass
class TickSummary:
    """Counts for one scheduler tick."""

    dispatched: int = 0
    failed: int = 0
    skipped: int = 0
    swept: int = 0


class SchedulerHandle:
    """Cancellation handle returned by ``ReminderScheduler.start``."""

    def __init__(self, thread: threading.Thread, stop_event: threading.Event):
        self._thread = thread
        self._stop_event = stop_event

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def cancel(self):
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)


class ReminderScheduler:
    """
    Polls for due reminders and dispatches each one once.

    Every tick selects unprocessed reminders inside a short window ending
    at "now", dispatches them one by one, marks each processed whatever
    the delivery outcome, and then sweeps reminders that are too old to
    send. Ticks run on a single thread and never overlap.
    """

    def __init__(
        self,
        task_service: TaskService,
        ledger: NotificationLedger,
        notification_service: NotificationService,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.task_service = task_service
        self.ledger = ledger
        self.notification_service = notification_service
        self.settings = settings
        self.metrics = metrics or metrics_collector
        self.interval = settings.reminder_tick_seconds
        self.window = timedelta(seconds=settings.reminder_window_seconds)
        self.stale_after = timedelta(seconds=settings.reminder_stale_seconds)

        self._handle: Optional[SchedulerHandle] = None
        self._tick_lock = threading.Lock()

    def _now(self) -> datetime:
        # "Now" in the household's zone, stored form is naive UTC
        return to_utc_naive(local_now(self.settings.time_zone), self.settings.time_zone)

    def run_once(self, now: Optional[datetime] = None) -> TickSummary:
        """
        Run one tick: dispatch due reminders, then sweep stale ones.

        Args:
            now: Naive-UTC reference time; defaults to the current time

        Returns:
            TickSummary for this tick
        """
        with self._tick_lock:
            now = now or self._now()
            summary = TickSummary()

            try:
                due = self.task_service.list_due_reminders(now - self.window, now)
            except Exception:
                logger.exception("Failed to load due reminders")
                self.metrics.scheduler_tick_error()
                due = []

            if due:
                logger.info(f"Found {len(due)} pending reminders to process")

            for task in due:
                self._process_task(task, summary)

            # Runs after the dispatch pass so a just-eligible reminder is never swept
            try:
                summary.swept = self.task_service.sweep_stale_reminders(now - self.stale_after)
            except Exception:
                logger.exception("Failed to sweep stale reminders")
                self.metrics.scheduler_tick_error()
            if summary.swept:
                self.metrics.reminder_swept(summary.swept)
                logger.warning(f"Marked {summary.swept} stale reminders as processed without sending")

            return summary

    def _process_task(self, task: Task, summary: TickSummary) -> None:
        try:
            user = self.task_service.get_user(task.assigned_to)
            if not user:
                logger.info(f"No user found for task {task.id}, skipping reminder")
                summary.skipped += 1
                self.metrics.reminder_skipped()
                return

            notification = self.ledger.insert_notification(
                task_id=task.id,
                user_id=user.id,
                message=self.notification_service.format_message(task, user),
            )
            result = self.notification_service.dispatch_reminder(task, user, notification.id)
            summary.dispatched += 1
            self.metrics.reminder_dispatched()
            events.info(
                "reminder processed",
                task_id=task.id,
                user_id=user.id,
                channel=result.channel,
                fallback=result.fallback,
            )
        except NotificationError as e:
            summary.failed += 1
            events.error("reminder delivery failed", task_id=task.id, code=e.code, error=e.message)
        except Exception:
            summary.failed += 1
            logger.exception(f"Failed to process reminder for task {task.id}")
        finally:
            self._mark_processed(task)

    def _mark_processed(self, task: Task) -> None:
        try:
            self.task_service.mark_reminder_processed(task.id)
        except Exception:
            logger.exception(f"Failed to mark reminder processed for task {task.id}")

    def _loop(self, stop_event: threading.Event) -> None:
        logger.info(f"Reminder scheduler running; tick={self.interval}s window={self.window} stale={self.stale_after}")
        while not stop_event.is_set():
            try:
                self.run_once()
            except Exception:
                logger.exception("Reminder tick failed")
                self.metrics.scheduler_tick_error()
            stop_event.wait(self.interval)
        logger.info("Reminder scheduler stopped")

    def start(self) -> SchedulerHandle:
        """Run a tick now and then one per interval on a background thread."""
        if self._handle is not None and self._handle.running:
            return self._handle

        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._loop,
            args=(stop_event,),
            name="reminder-scheduler",
            daemon=True,
        )
        self._handle = SchedulerHandle(thread, stop_event)
        thread.start()
        return self._handle

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the background loop; safe to call more than once."""
        handle, self._handle = self._handle, None
        if handle is None:
            return
        handle.cancel()
        handle.join(timeout)
