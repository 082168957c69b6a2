"""Dependencies that hand routers the services built at app creation."""
from fastapi import Request

from family_tasks.config import Settings
from family_tasks.services.notification_ledger import NotificationLedger
from family_tasks.services.notification_service import NotificationService
from family_tasks.services.recurring_task_service import RecurringTaskService
from family_tasks.services.task_service import TaskService


def get_settings_dep(request: Request) -> Settings:
    return request.app.state.settings


def get_task_service(request: Request) -> TaskService:
    return request.app.state.task_service


def get_ledger(request: Request) -> NotificationLedger:
    return request.app.state.ledger


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_recurring_service(request: Request) -> RecurringTaskService:
    return request.app.state.recurring_service
