"""
Notifications API Endpoints
"""
from fastapi import APIRouter, Depends

from app.core.auth import AuthUser, get_current_user
from app.services.notification_service import NotificationService

router = APIRouter()


def get_notification_service() -> NotificationService:
    return NotificationService()


@router.get("/")
async def list_notifications(
    user: AuthUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    """Deadline, overdue invoice and low stock alerts; unread first"""
    return {"status": "success", "data": service.list_notifications(user.id).model_dump()}


@router.post("/read-all")
async def mark_all_read(
    user: AuthUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    marked = service.mark_all_read(user.id)
    return {"status": "success", "marked": marked}


@router.post("/{notification_id}/read")
async def mark_read(
    notification_id: str,
    user: AuthUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    service.mark_read(user.id, notification_id)
    return {"status": "success"}


@router.post("/{notification_id}/dismiss")
async def dismiss(
    notification_id: str,
    user: AuthUser = Depends(get_current_user),
    service: NotificationService = Depends(get_notification_service),
):
    service.dismiss(user.id, notification_id)
    return {"status": "success"}
