"""
Delivery Ledger.

Single source of truth for what happened to each notification, combining
synchronous dispatch outcomes and asynchronous provider callbacks.
"""

import logging
import threading
from datetime import datetime
from typing import List, Optional

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from family_tasks.errors import NotFoundError
from family_tasks.models.notification import (
    STATUS_DELIVERED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SENT,
    Notification,
)

logger = logging.getLogger(__name__)

_PROVIDER_STATUS_MAP = {
    "queued": STATUS_SENT,
    "accepted": STATUS_SENT,
    "scheduled": STATUS_SENT,
    "sending": STATUS_SENT,
    "sent": STATUS_SENT,
    "delivered": STATUS_DELIVERED,
    "read": STATUS_DELIVERED,
    "failed": STATUS_FAILED,
    "undelivered": STATUS_FAILED,
    "canceled": STATUS_FAILED,
    "pending": STATUS_PENDING,
}


def normalize_provider_status(status: Optional[str]) -> str:
    """Map a provider-reported status onto pending/sent/delivered/failed."""
    normalized = (status or "").strip().lower()
    mapped = _PROVIDER_STATUS_MAP.get(normalized)
    if mapped is None:
        logger.warning(f"Unknown provider status '{status}', recording as pending")
        return STATUS_PENDING
    return mapped


def format_provider_error(error_code: Optional[str], error_message: Optional[str]) -> Optional[str]:
    if not error_code:
        return None
    return f"{error_code}: {error_message or ''}".rstrip()


class NotificationLedger:
    """Per-notification attempt record, keyed by row id and provider message id."""

    def __init__(self, engine: Engine):
        self.engine = engine
        # Attempt counts are read-modify-write; keep them atomic within the process
        self._lock = threading.Lock()

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def insert_notification(
        self,
        task_id: int,
        user_id: int,
        message: str,
        channel: Optional[str] = None,
    ) -> Notification:
        """Create the durable record before any delivery is attempted."""
        notification = Notification(
            task_id=task_id,
            user_id=user_id,
            message=message,
            channel=channel,
        )
        with self._session() as session:
            session.add(notification)
            session.commit()
            session.refresh(notification)
        return notification

    def get(self, notification_id: int) -> Optional[Notification]:
        with self._session() as session:
            return session.get(Notification, notification_id)

    def record_attempt(
        self,
        notification_id: int,
        status: str,
        provider_id: Optional[str] = None,
        error: Optional[str] = None,
        channel: Optional[str] = None,
    ) -> Notification:
        """
        Append one attempt: bump the counter and overwrite the latest outcome.

        Status, provider id and error are replaced by this call's values
        (latest write wins); a missing provider id keeps the stored one so
        the reconciliation key is never lost.

        Raises:
            NotFoundError: If the notification does not exist
        """
        with self._lock, self._session() as session:
            notification = session.get(Notification, notification_id)
            if not notification:
                raise NotFoundError(f"Notification {notification_id} not found")

            notification.delivery_attempts += 1
            notification.delivery_status = status
            if provider_id is not None:
                notification.message_sid = provider_id
            notification.delivery_error = error
            if channel is not None:
                notification.channel = channel
            notification.last_attempt_at = datetime.utcnow()

            session.add(notification)
            session.commit()
            session.refresh(notification)

        logger.debug(
            f"Notification {notification_id} attempt {notification.delivery_attempts}: "
            f"{status}{f' ({error})' if error else ''}"
        )
        return notification

    def find_by_provider_id(self, provider_id: str) -> Optional[Notification]:
        statement = select(Notification).where(Notification.message_sid == provider_id)
        with self._session() as session:
            return session.exec(statement).first()

    def reconcile(
        self,
        provider_id: str,
        status: str,
        error_code: Optional[str] = None,
        error_message: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Apply an asynchronous provider status callback.

        Unknown provider ids are dropped silently: callbacks can race ahead
        of the ledger write or refer to rows outside this system.

        Returns:
            The updated notification, or None when nothing matched
        """
        if not provider_id:
            return None

        notification = self.find_by_provider_id(provider_id)
        if notification is None:
            logger.info(f"Ignoring status callback for unknown message {provider_id}")
            return None

        return self.record_attempt(
            notification.id,
            normalize_provider_status(status),
            provider_id=provider_id,
            error=format_provider_error(error_code, error_message),
        )

    def list_for_user(self, user_id: int) -> List[Notification]:
        statement = (
            select(Notification)
            .where(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
        )
        with self._session() as session:
            return list(session.exec(statement).all())

    def list_all(self, status: Optional[str] = None) -> List[Notification]:
        """Audit log of every notification, newest first."""
        statement = select(Notification)
        if status:
            statement = statement.where(Notification.delivery_status == status)
        statement = statement.order_by(Notification.created_at.desc(), Notification.id.desc())
        with self._session() as session:
            return list(session.exec(statement).all())

    def mark_read(self, notification_id: int) -> Notification:
        with self._session() as session:
            notification = session.get(Notification, notification_id)
            if not notification:
                raise NotFoundError(f"Notification {notification_id} not found")
            notification.read = True
            session.add(notification)
            session.commit()
            session.refresh(notification)
        return notification
