"""
KRA API Endpoint
PIN verification, TCC status, nil returns and obligations via GavaConnect
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.core.auth import AuthUser, get_current_user
from app.services.kra_service import KraService

router = APIRouter()


def get_kra_service() -> KraService:
    return KraService()


class KraRequest(BaseModel):
    action: str
    pin: Optional[str] = None
    tax_period: Optional[str] = None
    obligation_type: Optional[str] = None


@router.post("/")
async def kra_action(
    request: KraRequest,
    user: AuthUser = Depends(get_current_user),
    service: KraService = Depends(get_kra_service),
):
    """Actions: verify_pin, check_tcc, nil_filing, get_obligations"""
    return await service.run_action(
        user.id,
        request.action,
        pin=request.pin,
        tax_period=request.tax_period,
        obligation_type=request.obligation_type,
    )
