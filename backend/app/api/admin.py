"""
Admin API - Platform Management Endpoints
Pricing plans, services, page content, settings, payment gateways,
payments, staff roles and user subscriptions

Every endpoint requires the admin role.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from app.core.auth import AuthUser, require_admin
from app.domain.catalog import (
    AppSettingUpdate,
    PageContentUpsert,
    PaymentGatewaySettings,
    PricingPlanUpsert,
    RoleAssignment,
    ServiceOfferingUpsert,
)
from app.domain.profile import TRIAL_EXTENSION_DAYS
from app.services.admin_settings_service import AdminSettingsService
from app.services.payment_service import PaymentService
from app.services.user_admin_service import UserAdminService

router = APIRouter()


def get_admin_settings_service() -> AdminSettingsService:
    return AdminSettingsService()


def get_user_admin_service() -> UserAdminService:
    return UserAdminService()


def get_payment_service() -> PaymentService:
    return PaymentService()


class SubscriptionOverride(BaseModel):
    plan: str
    status: str


class TrialExtension(BaseModel):
    days: int = Field(TRIAL_EXTENSION_DAYS, ge=1, le=365)


# =============================================================================
# Pricing plans
# =============================================================================

@router.get("/plans")
async def list_plans(
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": [plan.to_dict() for plan in service.list_plans()]}


@router.post("/plans", status_code=201)
async def create_plan(
    data: PricingPlanUpsert,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": service.save_plan(admin.id, data).to_dict()}


@router.put("/plans/{plan_id}")
async def update_plan(
    plan_id: str,
    data: PricingPlanUpsert,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": service.save_plan(admin.id, data, plan_id).to_dict()}


@router.delete("/plans/{plan_id}")
async def delete_plan(
    plan_id: str,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    service.delete_plan(admin.id, plan_id)
    return {"status": "success", "message": "Plan deleted"}


# =============================================================================
# Services
# =============================================================================

@router.get("/services")
async def list_services(
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": [s.model_dump() for s in service.list_services()]}


@router.post("/services", status_code=201)
async def create_service(
    data: ServiceOfferingUpsert,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": service.save_service(admin.id, data).model_dump()}


@router.put("/services/{service_id}")
async def update_service(
    service_id: str,
    data: ServiceOfferingUpsert,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": service.save_service(admin.id, data, service_id).model_dump()}


@router.delete("/services/{service_id}")
async def delete_service(
    service_id: str,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    service.delete_service(admin.id, service_id)
    return {"status": "success", "message": "Service deleted"}


# =============================================================================
# Page content
# =============================================================================

@router.get("/page-content")
async def list_page_content(
    page_name: Optional[str] = Query(None),
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": [block.model_dump() for block in service.page_content(page_name)]}


@router.put("/page-content")
async def save_page_content(
    data: PageContentUpsert,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    """Insert or update the block identified by (page_name, section_key)"""
    return {"status": "success", "data": service.save_page_content(admin.id, data).model_dump()}


@router.delete("/page-content/{content_id}")
async def delete_page_content(
    content_id: str,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    service.delete_page_content(admin.id, content_id)
    return {"status": "success", "message": "Content deleted"}


# =============================================================================
# App settings and payment gateways
# =============================================================================

@router.get("/settings")
async def list_settings(
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": [s.model_dump() for s in service.list_settings()]}


@router.put("/settings/{key}")
async def update_setting(
    key: str,
    data: AppSettingUpdate,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": service.update_setting(admin.id, key, data.value).model_dump()}


@router.get("/payment-settings")
async def get_payment_settings(
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    """Gateway settings with secrets masked"""
    return {"status": "success", "data": [g.model_dump() for g in service.get_payment_settings()]}


@router.put("/payment-settings")
async def update_payment_settings(
    data: PaymentGatewaySettings,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    saved = service.update_payment_settings(admin.id, data)
    return {"success": True, "message": "Payment settings updated", "data": saved.model_dump()}


@router.get("/payment-transactions")
async def list_payment_transactions(
    status: Optional[str] = Query(None, description="pending, completed or failed"),
    payment_method: Optional[str] = Query(None, description="mpesa, paystack or card"),
    admin: AuthUser = Depends(require_admin),
    service: PaymentService = Depends(get_payment_service),
):
    payments = service.list_payment_transactions(status=status, payment_method=payment_method)
    return {"status": "success", "count": len(payments), "data": payments}


# =============================================================================
# Staff roles
# =============================================================================

@router.get("/staff")
async def list_staff(
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    return {"status": "success", "data": [member.model_dump() for member in service.list_staff()]}


@router.put("/staff/{user_id}/role")
async def assign_role(
    user_id: str,
    data: RoleAssignment,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    service.assign_role(admin.id, user_id, data.role)
    return {"status": "success", "user_id": user_id, "role": data.role}


@router.delete("/staff/{user_id}/role")
async def remove_role(
    user_id: str,
    admin: AuthUser = Depends(require_admin),
    service: AdminSettingsService = Depends(get_admin_settings_service),
):
    service.remove_role(admin.id, user_id)
    return {"status": "success", "message": "Role removed"}


# =============================================================================
# Users and subscriptions
# =============================================================================

@router.get("/users")
async def list_users(
    admin: AuthUser = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    users = service.list_users()
    return {"status": "success", "count": len(users), "data": users}


@router.put("/users/{user_id}/subscription")
async def set_user_subscription(
    user_id: str,
    data: SubscriptionOverride,
    admin: AuthUser = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    return {"status": "success", "data": service.set_subscription(admin.id, user_id, data.plan, data.status)}


@router.post("/users/{user_id}/extend-trial")
async def extend_user_trial(
    user_id: str,
    data: Optional[TrialExtension] = None,
    admin: AuthUser = Depends(require_admin),
    service: UserAdminService = Depends(get_user_admin_service),
):
    days = data.days if data else TRIAL_EXTENSION_DAYS
    return {"status": "success", "data": service.extend_trial(admin.id, user_id, days)}
