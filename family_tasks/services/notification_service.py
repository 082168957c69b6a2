"""
Notification Service.

Formats reminder messages, picks a delivery channel, sends through the
messaging gateway with one level of WhatsApp -> SMS fallback, and writes
every outcome to the delivery ledger.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from family_tasks.config import Settings
from family_tasks.errors import ConfigurationError, NotFoundError, ProviderError, ValidationError
from family_tasks.models.notification import STATUS_FAILED, STATUS_PENDING, Notification
from family_tasks.models.task import Task
from family_tasks.models.user import CHANNEL_SMS, CHANNEL_WHATSAPP, User, normalize_phone_number
from family_tasks.services.gateway import MessageGateway, address_for
from family_tasks.services.notification_ledger import NotificationLedger, normalize_provider_status
from family_tasks.services.task_service import TaskService
from family_tasks.utils.logger import get_logger, mask_phone
from family_tasks.utils.metrics import MetricsCollector, metrics_collector
from family_tasks.utils.timezone import local_now, to_local, to_utc_naive

logger = logging.getLogger(__name__)
events = get_logger("family_tasks.dispatcher")

NO_PHONE_ERROR = "no phone number provided"
WHATSAPP_UNCONFIGURED_NOTE = "WhatsApp not configured, falling back to SMS"
E164_PATTERN = re.compile(r"^\+[1-9]\d{6,14}$")


@dataclass(frozen=True)
class DeliveryResult:
    """What a dispatch actually did."""

    status: str
    channel: str
    provider_id: Optional[str]
    fallback: bool


class NotificationService:
    """Dispatcher for task reminders."""

    def __init__(
        self,
        gateway: Optional[MessageGateway],
        ledger: NotificationLedger,
        task_service: TaskService,
        settings: Settings,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.gateway = gateway
        self.ledger = ledger
        self.task_service = task_service
        self.settings = settings
        self.metrics = metrics or metrics_collector

    def format_message(self, task: Task, user: User) -> str:
        """Human-readable reminder body; the due date is shown in the local zone."""
        if task.due_date:
            local_due = to_local(task.due_date, self.settings.time_zone)
            when = f"on {local_due:%b} {local_due.day}"
        else:
            when = "soon"
        message = f'Reminder for {user.name}: Task "{task.title}" is due {when}. {task.description or ""}'
        return message.rstrip()

    def _origin_for(self, channel: str) -> str:
        if channel == CHANNEL_WHATSAPP:
            return address_for(channel, self.settings.twilio_whatsapp_number)
        return address_for(channel, self.settings.twilio_phone_number)

    def _downgrade_preference(self, user: User, reason: str) -> None:
        """Permanently switch the user to SMS so future reminders skip WhatsApp."""
        if user.id is None or user.notification_preference == CHANNEL_SMS:
            return
        try:
            self.task_service.update_user_preference(user.id, CHANNEL_SMS)
        except NotFoundError:
            logger.warning(f"Could not downgrade preference for missing user {user.id}")
            return
        events.info("preference downgraded", user_id=user.id, reason=reason)

    def _send(self, channel: str, phone_number: str, body: str):
        """Send through the gateway; anything it raises surfaces as a ProviderError."""
        try:
            return self.gateway.send(
                channel=channel,
                to=address_for(channel, phone_number),
                from_=self._origin_for(channel),
                body=body,
                status_callback_url=self.settings.status_callback_url,
            )
        except ProviderError:
            raise
        except Exception as e:
            logger.exception(f"Unexpected gateway error sending {channel} message to {mask_phone(phone_number)}")
            raise ProviderError.from_exception(e) from e

    def dispatch_reminder(self, task: Task, user: User, notification_id: int) -> DeliveryResult:
        """
        Deliver one reminder and record the outcome on the ledger.

        Channel selection runs as a two-step state machine: the preferred
        channel first, then SMS exactly once if WhatsApp is unconfigured or
        unreachable for this recipient. A failure on the SMS step is final.

        Args:
            task: Task being reminded about
            user: Assignee receiving the reminder
            notification_id: Ledger row created by the caller

        Returns:
            DeliveryResult with the channel actually used

        Raises:
            ValidationError: If the user has no phone number
            ConfigurationError: If no gateway client is available
            ProviderError: If the gateway rejects the final attempt
        """
        events.info(
            "sending task reminder",
            task_id=task.id,
            user_id=user.id,
            preference=user.notification_preference,
        )

        phone_number = normalize_phone_number(user.phone_number)
        if not phone_number:
            self.ledger.record_attempt(notification_id, STATUS_FAILED, error=NO_PHONE_ERROR)
            self.metrics.notification_failed()
            raise ValidationError("No phone number provided", details={"user_id": user.id})
        if not E164_PATTERN.match(phone_number):
            self.ledger.record_attempt(notification_id, STATUS_FAILED, error=f"invalid phone number: {mask_phone(phone_number)}")
            self.metrics.notification_failed()
            raise ValidationError("Invalid phone number", details={"user_id": user.id})

        if self.gateway is None:
            error = ConfigurationError("messaging gateway is not configured")
            self.ledger.record_attempt(notification_id, STATUS_FAILED, error=f"{error.code}: {error.message}")
            self.metrics.notification_failed()
            raise error

        channel = CHANNEL_WHATSAPP if user.notification_preference == CHANNEL_WHATSAPP else CHANNEL_SMS
        fallback = False

        if channel == CHANNEL_WHATSAPP and not self.settings.whatsapp_configured:
            logger.info(f"WhatsApp unavailable for user {user.id}, falling back to SMS")
            self.ledger.record_attempt(
                notification_id,
                STATUS_PENDING,
                error=WHATSAPP_UNCONFIGURED_NOTE,
                channel=CHANNEL_SMS,
            )
            self._downgrade_preference(user, "whatsapp_unconfigured")
            channel = CHANNEL_SMS
            fallback = True

        body = self.format_message(task, user)

        try:
            message = self._send(channel, phone_number, body)
        except ProviderError as e:
            if channel == CHANNEL_WHATSAPP and e.code in self.settings.whatsapp_fallback_error_codes:
                logger.info(f"WhatsApp unreachable for {mask_phone(phone_number)} ({e.code}), retrying with SMS")
                self._downgrade_preference(user, f"provider_{e.code}")
                channel = CHANNEL_SMS
                fallback = True
                try:
                    message = self._send(channel, phone_number, body)
                except ProviderError as retry_error:
                    self._record_failure(notification_id, retry_error, channel, task, user)
                    raise
            else:
                self._record_failure(notification_id, e, channel, task, user)
                raise

        status = normalize_provider_status(message.status)
        self.ledger.record_attempt(
            notification_id,
            status,
            provider_id=message.provider_id,
            channel=channel,
        )
        self.metrics.notification_sent()
        if fallback:
            self.metrics.channel_fallback()

        events.info(
            "message queued",
            task_id=task.id,
            user_id=user.id,
            message_sid=message.provider_id,
            status=status,
            channel=channel,
            fallback=fallback,
        )
        return DeliveryResult(
            status=status,
            channel=channel,
            provider_id=message.provider_id,
            fallback=fallback,
        )

    def _record_failure(self, notification_id: int, error: ProviderError, channel: str, task: Task, user: User) -> None:
        self.ledger.record_attempt(
            notification_id,
            STATUS_FAILED,
            error=error.ledger_text,
            channel=channel,
        )
        self.metrics.notification_failed()
        events.error(
            "delivery failed",
            task_id=task.id,
            user_id=user.id,
            channel=channel,
            error=error.ledger_text,
        )

    def reconcile_delivery_callback(
        self,
        provider_id: str,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Optional[Notification]:
        """Apply a provider status callback to the ledger; unknown ids are a no-op."""
        self.metrics.delivery_callback()
        return self.ledger.reconcile(provider_id, status, error_code, error_message)

    def send_test_notification(self, user_id: int) -> DeliveryResult:
        """
        Create a throwaway task and send its reminder right away.

        Raises:
            NotFoundError: If the user does not exist
            NotificationError: Any dispatch failure, for the caller to surface
        """
        user = self.task_service.get_user(user_id)
        if not user:
            raise NotFoundError(f"User {user_id} not found")

        logger.info(f"Testing notification for user {user.id} ({user.notification_preference})")

        now = to_utc_naive(local_now(self.settings.time_zone), self.settings.time_zone)
        # Written already processed so a concurrent scheduler tick never selects it
        task = self.task_service.create_task(
            title="Test Notification",
            description="This is a test notification to verify your notification settings.",
            assigned_to=user.id,
            priority="medium",
            due_date=now,
            reminder_time=now,
            reminder_processed=True,
        )

        notification = self.ledger.insert_notification(
            task_id=task.id,
            user_id=user.id,
            message=self.format_message(task, user),
        )
        return self.dispatch_reminder(task, user, notification.id)


def describe_result(result: DeliveryResult) -> str:
    """Short human summary of a delivery, used by the test-notification endpoint."""
    if result.fallback:
        return "Test notification sent successfully via SMS (WhatsApp unavailable)"
    return f"Test notification sent successfully via {result.channel}"
