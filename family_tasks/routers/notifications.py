"""Notification router: delivery audit log and provider status callbacks."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from twilio.request_validator import RequestValidator

from family_tasks.config import Settings
from family_tasks.models.notification import DELIVERY_STATUSES
from family_tasks.routers.deps import get_ledger, get_notification_service, get_settings_dep
from family_tasks.schemas.notification import NotificationResponse, WebhookAck
from family_tasks.services.notification_ledger import NotificationLedger
from family_tasks.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _signature_valid(request: Request, params: dict, settings: Settings) -> bool:
    signature = request.headers.get("X-Twilio-Signature", "")
    if not signature or not settings.twilio_auth_token:
        return False
    validator = RequestValidator(settings.twilio_auth_token)
    return validator.validate(settings.status_callback_url, params, signature)


@router.post("/webhook", response_model=WebhookAck)
async def delivery_status_webhook(
    request: Request,
    notifier: NotificationService = Depends(get_notification_service),
    settings: Settings = Depends(get_settings_dep),
):
    """
    Receive an asynchronous delivery status from the gateway.

    Always answers 200 for well-formed callbacks, including ones for unknown
    messages, so the provider does not keep retrying them.
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    if settings.webhook_signature_mode == "enforce" and not _signature_valid(request, params, settings):
        logger.warning("Rejected status callback with a missing or invalid signature")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid signature"
        )

    message_sid = params.get("MessageSid")
    message_status = params.get("MessageStatus")
    if not message_sid or not message_status:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="MessageSid and MessageStatus are required"
        )

    logger.info(f"Status callback for {message_sid}: {message_status}")
    notification = notifier.reconcile_delivery_callback(
        message_sid,
        message_status,
        error_code=params.get("ErrorCode"),
        error_message=params.get("ErrorMessage"),
    )
    return WebhookAck(received=True, matched=notification is not None)


@router.get("/logs", response_model=List[NotificationResponse])
async def list_notification_logs(
    delivery_status: Optional[str] = Query(None, alias="status", description="pending, sent, delivered or failed"),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """Audit log of every notification, newest first."""
    if delivery_status and delivery_status not in DELIVERY_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"status must be one of: {', '.join(DELIVERY_STATUSES)}"
        )
    return ledger.list_all(status=delivery_status)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(
    notification_id: int,
    ledger: NotificationLedger = Depends(get_ledger),
):
    return ledger.mark_read(notification_id)
