"""
Public Site API
Pricing, services and page content for the marketing pages (no authentication)
"""
from fastapi import APIRouter, Depends

from app.services.admin_settings_service import AdminSettingsService

router = APIRouter()


def get_admin_settings_service() -> AdminSettingsService:
    return AdminSettingsService()


@router.get("/pricing")
async def public_pricing(service: AdminSettingsService = Depends(get_admin_settings_service)):
    return {"status": "success", "data": [plan.to_dict() for plan in service.list_plans(active_only=True)]}


@router.get("/services")
async def public_services(service: AdminSettingsService = Depends(get_admin_settings_service)):
    return {"status": "success", "data": [s.model_dump() for s in service.list_services(active_only=True)]}


@router.get("/page-content/{page_name}")
async def public_page_content(page_name: str, service: AdminSettingsService = Depends(get_admin_settings_service)):
    """Active blocks of one page keyed by section_key"""
    return {"status": "success", "data": service.page_content_map(page_name)}
