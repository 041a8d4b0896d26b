"""
Subscriptions API Endpoints
Pricing plans, plan changes and the upgrade confirmation email
"""
from typing import Any, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from app.core.auth import AuthUser, get_current_user
from app.domain.profile import BillingPeriod
from app.repositories import CatalogRepository
from app.services.subscription_service import SubscriptionService

router = APIRouter()


def get_subscription_service() -> SubscriptionService:
    return SubscriptionService()


class PlanChangeRequest(BaseModel):
    plan_key: str = Field(..., min_length=1)
    billing_period: BillingPeriod = "monthly"


class UpgradeEmailRequest(BaseModel):
    plan_name: str
    plan_key: str
    billing_period: BillingPeriod = "monthly"
    price: Any = None
    features: Optional[List[str]] = None


@router.get("/plans")
async def list_plans():
    """Active pricing plans (public)"""
    plans = CatalogRepository().list_plans(active_only=True)
    return {"status": "success", "data": [plan.to_dict() for plan in plans]}


@router.post("/change")
async def change_plan(
    request: PlanChangeRequest,
    user: AuthUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return {"status": "success", "data": service.change_plan(user.id, request.plan_key, request.billing_period)}


@router.post("/email")
async def send_upgrade_email(
    request: UpgradeEmailRequest,
    user: AuthUser = Depends(get_current_user),
    service: SubscriptionService = Depends(get_subscription_service),
):
    return await service.send_upgrade_email(
        user.id,
        request.plan_name,
        request.plan_key,
        request.billing_period,
        request.price,
        request.features,
    )
