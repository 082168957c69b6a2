"""Shared fixtures: in-memory database, test settings and wired services."""
import pytest

from family_tasks.config import Settings
from family_tasks.db.config import create_db_engine
from family_tasks.db.init import init_db
from family_tasks.services.notification_ledger import NotificationLedger
from family_tasks.services.notification_service import NotificationService
from family_tasks.services.recurring_task_service import RecurringTaskService
from family_tasks.services.reminder_scheduler import ReminderScheduler
from family_tasks.services.task_service import TaskService
from family_tasks.utils.metrics import MetricsCollector

from .fakes import FakeGateway


@pytest.fixture()
def settings() -> Settings:
    """Valid gateway configuration, UTC household, scheduler off."""
    return Settings(
        database_url="sqlite://",
        time_zone="UTC",
        public_base_url="https://tasks.example.test",
        twilio_account_sid="AC00000000000000000000000000000000",
        twilio_auth_token="test-auth-token",
        twilio_phone_number="+15550000000",
        twilio_whatsapp_number="+15550000001",
        scheduler_enabled=False,
    )


@pytest.fixture()
def engine():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def metrics() -> MetricsCollector:
    return MetricsCollector()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def task_service(engine) -> TaskService:
    return TaskService(engine)


@pytest.fixture()
def ledger(engine) -> NotificationLedger:
    return NotificationLedger(engine)


@pytest.fixture()
def notifier(gateway, ledger, task_service, settings, metrics) -> NotificationService:
    return NotificationService(gateway, ledger, task_service, settings, metrics)


@pytest.fixture()
def scheduler(task_service, ledger, notifier, settings, metrics) -> ReminderScheduler:
    scheduler = ReminderScheduler(task_service, ledger, notifier, settings, metrics)
    yield scheduler
    scheduler.stop()


@pytest.fixture()
def recurring(task_service, settings, metrics) -> RecurringTaskService:
    return RecurringTaskService(task_service, settings, metrics)


@pytest.fixture()
def user(task_service):
    return task_service.create_user(name="Dana", phone_number="+972501234567")
