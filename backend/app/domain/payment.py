"""
Payment Transaction Domain Model

Subscription and invoice payments collected through M-Pesa, Paystack or
Stripe. Subscription payments carry a reference of the form
``SUB_{user_id}_{plan}[_{timestamp}]`` so callbacks can find the payer.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from app.core.constants import DEFAULT_PAID_PLAN

PaymentMethod = Literal["mpesa", "paystack", "card"]
PaymentStatus = Literal["pending", "completed", "failed"]

SUBSCRIPTION_PREFIX = "SUB_"
INVOICE_PREFIX = "INV-"


class PaymentTransaction(BaseModel):
    """Payment transaction row (payment_transactions table)"""
    id: Optional[str] = None
    user_id: str
    amount: Decimal = Decimal("0")
    currency: str = "KES"
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None
    transaction_id: Optional[str] = None
    subscription_plan: Optional[str] = None
    status: PaymentStatus = "pending"
    description: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        data = self.model_dump()
        data["amount"] = float(self.amount)
        return data


def parse_subscription_reference(reference: Optional[str]) -> Optional[Tuple[str, str]]:
    """
    Extract (user_id, plan) from a subscription payment reference

    ``SUB_{user_id}_{plan}`` and ``SUB_{user_id}_{plan}_{timestamp}`` are
    accepted. The plan defaults to ``business`` when missing. Any other
    reference returns None.
    """
    if not reference or not reference.startswith(SUBSCRIPTION_PREFIX):
        return None

    parts = reference.split("_")
    user_id = parts[1] if len(parts) > 1 else ""
    if not user_id:
        return None

    plan = parts[2] if len(parts) > 2 and parts[2] else DEFAULT_PAID_PLAN
    return user_id, plan


def build_subscription_reference(user_id: str, plan: str, timestamp: Optional[int] = None) -> str:
    reference = f"{SUBSCRIPTION_PREFIX}{user_id}_{plan}"
    if timestamp is not None:
        reference = f"{reference}_{timestamp}"
    return reference


def is_invoice_reference(reference: Optional[str]) -> bool:
    return bool(reference) and reference.startswith(INVOICE_PREFIX)
