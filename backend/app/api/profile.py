"""
Profile API Endpoints
Business profile and subscription status of the signed-in user
"""
from fastapi import APIRouter, Depends

from app.core.auth import AuthUser, get_current_user
from app.core.errors import ResourceNotFoundError
from app.domain.profile import ProfileUpdate
from app.repositories import ProfileRepository
from app.services.subscription_service import SubscriptionService

router = APIRouter()


def get_subscription_service() -> SubscriptionService:
    return SubscriptionService()


@router.get("/")
async def get_profile(user: AuthUser = Depends(get_current_user)):
    """Business profile; vendor secrets are never returned"""
    profile = ProfileRepository().get_by_user_id(user.id)
    if not profile:
        raise ResourceNotFoundError("Profile", user.id)

    return {"status": "success", "data": profile.public_dict()}


@router.put("/")
async def update_profile(updates: ProfileUpdate, user: AuthUser = Depends(get_current_user)):
    profile = ProfileRepository().update(user.id, updates)
    if not profile:
        raise ResourceNotFoundError("Profile", user.id)

    return {"status": "success", "data": profile.public_dict()}


@router.get("/subscription")
async def get_subscription(
    user: AuthUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Derived subscription flags: is_active, is_trial_active, days remaining"""
    return {"status": "success", "data": service.get_status(user.id)}
