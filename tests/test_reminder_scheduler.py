import time
from dataclasses import replace
from datetime import datetime, timedelta

from family_tasks.errors import ProviderError
from family_tasks.services.reminder_scheduler import ReminderScheduler

NOW = datetime(2024, 1, 1, 12, 0)


def _task(task_service, user, reminder_time, **fields):
    return task_service.create_task(
        title=fields.pop("title", "Feed the cat"),
        assigned_to=user.id,
        due_date=reminder_time + timedelta(hours=1),
        reminder_time=reminder_time,
        **fields,
    )


def test_due_reminder_is_dispatched_exactly_once(scheduler, task_service, ledger, gateway, user) -> None:
    task = _task(task_service, user, NOW - timedelta(seconds=30))

    first = scheduler.run_once(now=NOW)
    second = scheduler.run_once(now=NOW + timedelta(seconds=60))

    assert first.dispatched == 1
    assert second.dispatched == 0
    assert len(gateway.calls) == 1
    assert task_service.get_task(task.id).reminder_processed is True
    assert len(ledger.list_for_user(user.id)) == 1


def test_future_reminder_is_left_alone(scheduler, task_service, gateway, user) -> None:
    task = _task(task_service, user, NOW + timedelta(minutes=5))

    summary = scheduler.run_once(now=NOW)

    assert summary.dispatched == 0
    assert gateway.calls == []
    assert task_service.get_task(task.id).reminder_processed is False


def test_window_end_is_inclusive(scheduler, task_service, gateway, user) -> None:
    _task(task_service, user, NOW)

    assert scheduler.run_once(now=NOW).dispatched == 1


def test_stale_reminder_is_swept_without_sending(scheduler, task_service, ledger, gateway, user, metrics) -> None:
    task = _task(task_service, user, NOW - timedelta(minutes=10))

    summary = scheduler.run_once(now=NOW)

    assert summary.swept == 1
    assert summary.dispatched == 0
    assert gateway.calls == []
    assert ledger.list_all() == []
    assert task_service.get_task(task.id).reminder_processed is True
    assert metrics.get_metrics()["counters"]["reminders_swept_total"] == 1


def test_completed_tasks_are_not_reminded(scheduler, task_service, gateway, user) -> None:
    task = _task(task_service, user, NOW - timedelta(seconds=30))
    task_service.set_completed(task.id)

    assert scheduler.run_once(now=NOW).dispatched == 0
    assert gateway.calls == []


def test_one_failure_does_not_block_the_rest(scheduler, task_service, ledger, gateway, user) -> None:
    first = _task(task_service, user, NOW - timedelta(seconds=40), title="First")
    second = _task(task_service, user, NOW - timedelta(seconds=20), title="Second")
    gateway.queue(ProviderError("Service unavailable", code="20500", status=503))

    summary = scheduler.run_once(now=NOW)

    assert summary.failed == 1
    assert summary.dispatched == 1
    assert task_service.get_task(first.id).reminder_processed is True
    assert task_service.get_task(second.id).reminder_processed is True
    statuses = {n.task_id: n.delivery_status for n in ledger.list_all()}
    assert statuses == {first.id: "failed", second.id: "sent"}


def test_failed_dispatch_is_not_retried(scheduler, task_service, ledger, gateway) -> None:
    no_phone = task_service.create_user(name="Noa")
    task = _task(task_service, no_phone, NOW - timedelta(seconds=30))

    first = scheduler.run_once(now=NOW)
    second = scheduler.run_once(now=NOW + timedelta(seconds=30))

    assert first.failed == 1
    assert second.failed == 0
    assert gateway.calls == []
    assert task_service.get_task(task.id).reminder_processed is True
    assert [n.delivery_status for n in ledger.list_all()] == ["failed"]


def test_unresolved_assignee_is_skipped_and_marked(scheduler, task_service, ledger, gateway, user, monkeypatch) -> None:
    task = _task(task_service, user, NOW - timedelta(seconds=30))
    monkeypatch.setattr(task_service, "get_user", lambda user_id: None)

    summary = scheduler.run_once(now=NOW)

    assert summary.skipped == 1
    assert gateway.calls == []
    assert ledger.list_all() == []
    assert task_service.get_task(task.id).reminder_processed is True


def test_reminders_are_processed_in_reminder_time_order(scheduler, task_service, gateway, user) -> None:
    _task(task_service, user, NOW - timedelta(seconds=10), title="Later")
    _task(task_service, user, NOW - timedelta(seconds=50), title="Earlier")

    scheduler.run_once(now=NOW)

    assert ['"Earlier"' in call.body for call in gateway.calls] == [True, False]


def test_start_runs_an_immediate_tick_and_stops(task_service, ledger, notifier, settings, gateway, user, metrics) -> None:
    scheduler = ReminderScheduler(task_service, ledger, notifier, replace(settings, reminder_tick_seconds=3600), metrics)
    _task(task_service, user, datetime.utcnow() - timedelta(seconds=5))

    handle = scheduler.start()
    try:
        deadline = time.time() + 5
        while not gateway.calls and time.time() < deadline:
            time.sleep(0.05)
        assert len(gateway.calls) == 1
        assert handle.running
        assert scheduler.start() is handle
    finally:
        scheduler.stop()

    assert not handle.running
    scheduler.stop()
