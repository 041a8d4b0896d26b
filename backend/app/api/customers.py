"""
Customers API Endpoints
Loyalty programme members of a business
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.auth import AuthUser, get_current_user
from app.domain.loyalty import LoyaltyCustomerCreate
from app.repositories import LoyaltyRepository
from app.services.pos_service import PosService

router = APIRouter()


def get_pos_service() -> PosService:
    return PosService()


@router.get("/")
async def list_customers(
    search: Optional[str] = Query(None, description="Match phone or name"),
    user: AuthUser = Depends(get_current_user),
    service: PosService = Depends(get_pos_service),
):
    customers = service.list_loyalty_customers(user.id, search=search)
    return {"status": "success", "count": len(customers), "data": [c.model_dump() for c in customers]}


@router.get("/lookup")
async def lookup_customer(
    phone: str = Query(..., min_length=9),
    user: AuthUser = Depends(get_current_user),
    service: PosService = Depends(get_pos_service),
):
    """Find a loyalty member by phone at the till"""
    return {"status": "success", "data": service.lookup_loyalty_customer(user.id, phone).model_dump()}


@router.post("/", status_code=201)
async def register_customer(
    data: LoyaltyCustomerCreate,
    user: AuthUser = Depends(get_current_user),
    service: PosService = Depends(get_pos_service),
):
    customer = service.register_loyalty_customer(user.id, data.phone, data.name)
    return {"status": "success", "data": customer.model_dump()}


@router.get("/{customer_id}/transactions")
async def list_customer_points(customer_id: str, user: AuthUser = Depends(get_current_user)):
    """Earn and redeem history of one member"""
    entries = LoyaltyRepository().list_transactions(user.id, customer_id)
    return {"status": "success", "count": len(entries), "data": [e.model_dump() for e in entries]}
