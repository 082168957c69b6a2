"""User router: household members and their test notifications."""
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from family_tasks.errors import NotificationError
from family_tasks.routers.deps import get_ledger, get_notification_service, get_task_service
from family_tasks.schemas.notification import NotificationResponse, TestNotificationResponse
from family_tasks.schemas.user import UserCreate, UserResponse, UserUpdate
from family_tasks.services.notification_ledger import NotificationLedger
from family_tasks.services.notification_service import NotificationService, describe_result
from family_tasks.services.task_service import TaskService

router = APIRouter(prefix="/users", tags=["Users"])


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    service: TaskService = Depends(get_task_service),
):
    """Add a household member."""
    return service.create_user(
        name=user_data.name,
        color=user_data.color,
        phone_number=user_data.phone_number,
        notification_preference=user_data.notification_preference,
    )


@router.get("", response_model=List[UserResponse])
async def list_users(service: TaskService = Depends(get_task_service)):
    return service.list_users()


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, service: TaskService = Depends(get_task_service)):
    user = service.get_user(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return user


@router.patch("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    user_data: UserUpdate,
    service: TaskService = Depends(get_task_service),
):
    """Change a member's name, color, phone number or channel preference."""
    return service.update_user(user_id, user_data.model_dump(exclude_unset=True))


@router.get("/{user_id}/notifications", response_model=List[NotificationResponse])
async def list_user_notifications(
    user_id: int,
    service: TaskService = Depends(get_task_service),
    ledger: NotificationLedger = Depends(get_ledger),
):
    """Delivery history for one user, newest first."""
    if not service.get_user(user_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found"
        )
    return ledger.list_for_user(user_id)


@router.post("/{user_id}/test-notification", response_model=TestNotificationResponse)
def send_test_notification(
    user_id: int,
    notifier: NotificationService = Depends(get_notification_service),
):
    """Send a reminder for a throwaway task right now to check the user's settings."""
    try:
        result = notifier.send_test_notification(user_id)
    except NotificationError as e:
        body = TestNotificationResponse(success=False, message=e.message, status="failed")
        return JSONResponse(status_code=e.status or 500, content=body.model_dump())

    return TestNotificationResponse(
        success=True,
        message=describe_result(result),
        status=result.status,
        channel=result.channel,
        fallback=result.fallback,
    )
