"""
eTIMS API Endpoint
Single action endpoint for KRA eTIMS invoice submission
"""
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.core.auth import AuthUser, get_current_user
from app.services.etims_service import EtimsService

router = APIRouter()


def get_etims_service() -> EtimsService:
    return EtimsService()


class EtimsRequest(BaseModel):
    action: str
    invoice_id: Optional[str] = None
    submission_id: Optional[str] = None


@router.post("/")
async def etims_action(
    request: EtimsRequest,
    user: AuthUser = Depends(get_current_user),
    service: EtimsService = Depends(get_etims_service),
):
    """
    Actions:
        submit_invoice: send an invoice to eTIMS (invoice_id)
        get_status: submission history (invoice_id or submission_id)
        verify_submission: confirm a submission with KRA (submission_id)
        cancel_invoice: cancel a submitted invoice (submission_id)
    """
    return await service.run_action(
        user.id,
        request.action,
        invoice_id=request.invoice_id,
        submission_id=request.submission_id,
    )
