"""
Transaction Domain Model

A sale or expense entry in the cash book. Sales are also written
automatically by invoice creation and POS checkout.
"""
from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

TransactionType = Literal["sale", "expense"]
PaymentMethod = Literal["cash", "mpesa", "card", "bank"]


class Transaction(BaseModel):
    """
    Transaction domain model (transactions table)

    Fields:
        type: sale or expense
        amount: Gross amount in KES
        vat_amount: VAT portion of the amount, when applicable
        is_vat_applicable: Whether the entry counts towards the VAT return
        payment_reference: M-Pesa receipt number or other payment reference
    """

    id: str
    user_id: str
    type: TransactionType
    amount: Decimal = Field(..., ge=0)
    description: str
    category: str
    date: date
    customer: Optional[str] = None
    vendor: Optional[str] = None
    receipt_image: Optional[str] = None
    vat_amount: Decimal = Decimal("0")
    is_vat_applicable: bool = False
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    def to_dict(self) -> dict:
        """Convert to dictionary with Decimal to float conversion"""
        data = self.model_dump()
        data["amount"] = float(self.amount)
        data["vat_amount"] = float(self.vat_amount or 0)
        return data


class TransactionCreate(BaseModel):
    """Schema for recording a sale or expense"""
    type: TransactionType
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    date: date
    customer: Optional[str] = None
    vendor: Optional[str] = None
    receipt_image: Optional[str] = None
    vat_amount: Decimal = Decimal("0")
    is_vat_applicable: bool = False
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None


class TransactionUpdate(BaseModel):
    """Schema for editing a transaction"""
    amount: Optional[Decimal] = Field(None, gt=0)
    description: Optional[str] = None
    category: Optional[str] = None
    date: Optional[date] = None
    customer: Optional[str] = None
    vendor: Optional[str] = None
    receipt_image: Optional[str] = None
    vat_amount: Optional[Decimal] = None
    is_vat_applicable: Optional[bool] = None
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
