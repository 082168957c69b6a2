"""
Metrics Collection for reminder delivery.

Counts reminders, deliveries, fallbacks and generated occurrences.
"""

import threading
import time
from collections import defaultdict
from datetime import datetime
from typing import Any, Callable, Dict

COUNTERS = (
    "reminders_dispatched_total",
    "reminders_skipped_total",
    "reminders_swept_total",
    "notifications_sent_total",
    "notifications_failed_total",
    "channel_fallbacks_total",
    "delivery_callbacks_total",
    "occurrences_created_total",
    "scheduler_tick_errors_total",
)


class MetricsCollector:
    """Collects and manages in-process metrics."""

    def __init__(self):
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()
        for name in COUNTERS:
            self.metrics[name] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat(),
            }

    def reset(self):
        with self.lock:
            self.metrics.clear()
            self.timers.clear()
            for name in COUNTERS:
                self.metrics[name] = 0

    def reminder_dispatched(self):
        self.increment_counter("reminders_dispatched_total")

    def reminder_skipped(self):
        self.increment_counter("reminders_skipped_total")

    def reminder_swept(self, count: int = 1):
        self.increment_counter("reminders_swept_total", count)

    def notification_sent(self):
        self.increment_counter("notifications_sent_total")

    def notification_failed(self):
        self.increment_counter("notifications_failed_total")

    def channel_fallback(self):
        self.increment_counter("channel_fallbacks_total")

    def delivery_callback(self):
        self.increment_counter("delivery_callbacks_total")

    def occurrence_created(self, count: int = 1):
        self.increment_counter("occurrences_created_total", count)

    def scheduler_tick_error(self):
        self.increment_counter("scheduler_tick_errors_total")

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator recording the wall time of each call, including failed ones."""
        def decorator(func):
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.time() - start_time)
            wrapper.__name__ = func.__name__
            wrapper.__doc__ = func.__doc__
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
