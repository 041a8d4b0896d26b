"""
POS API Endpoints
Till checkout
"""
from fastapi import APIRouter, Depends

from app.core.auth import AuthUser, get_current_user
from app.domain.pos import CheckoutRequest
from app.services.pos_service import PosService

router = APIRouter()


def get_pos_service() -> PosService:
    return PosService()


@router.post("/checkout")
async def checkout(
    request: CheckoutRequest,
    user: AuthUser = Depends(get_current_user),
    service: PosService = Depends(get_pos_service),
):
    """
    Complete a sale

    Decrements stock, moves loyalty points and books the sale. Returns
    the receipt.
    """
    receipt = service.checkout(user.id, request)
    return {"status": "success", "data": receipt.model_dump()}
