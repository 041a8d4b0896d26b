"""
Point of sale models and cart arithmetic
"""
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from app.core.constants import VAT_RATE
from app.domain.loyalty import discount_for_points, points_to_earn
from app.domain.transaction import PaymentMethod

CENT = Decimal("0.01")

POS_SALE_PREFIX = "POS Sale"


class CartLine(BaseModel):
    product_id: str
    quantity: int = Field(..., gt=0)


class CheckoutRequest(BaseModel):
    """A till checkout: the cart plus how it was paid"""
    items: List[CartLine] = Field(..., min_length=1)
    payment_method: PaymentMethod = "cash"
    customer_phone: Optional[str] = None
    loyalty_customer_id: Optional[str] = None
    points_to_redeem: int = Field(0, ge=0)
    payment_reference: Optional[str] = None

    @model_validator(mode="after")
    def redemption_needs_customer(self):
        if self.points_to_redeem and not self.loyalty_customer_id:
            raise ValueError("points_to_redeem requires loyalty_customer_id")
        return self


class ReceiptLine(BaseModel):
    product_id: str
    description: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class PosTotals(BaseModel):
    subtotal: Decimal
    loyalty_discount: Decimal
    vat_amount: Decimal
    total: Decimal
    points_earned: int


class PosReceipt(BaseModel):
    transaction_id: str
    items: List[ReceiptLine]
    subtotal: Decimal
    loyalty_discount: Decimal = Decimal("0")
    vat_amount: Decimal = Decimal("0")
    total: Decimal
    payment_method: PaymentMethod
    customer_phone: Optional[str] = None
    loyalty_points_earned: int = 0
    loyalty_points_redeemed: int = 0
    loyalty_balance: Optional[int] = None
    mpesa_receipt_number: Optional[str] = None


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def calculate_pos_totals(
    lines: List[ReceiptLine],
    points_to_redeem: int,
    vat_registered: bool,
    earns_points: bool,
) -> PosTotals:
    """
    Cart totals

    The loyalty discount comes off before VAT, and points are earned on
    the discounted amount excluding VAT.
    """
    subtotal = sum((line.total for line in lines), Decimal("0"))
    discount = Decimal(discount_for_points(points_to_redeem))
    discounted = max(Decimal("0"), subtotal - discount)
    vat_amount = _money(discounted * VAT_RATE) if vat_registered else Decimal("0")

    return PosTotals(
        subtotal=_money(subtotal),
        loyalty_discount=_money(min(discount, subtotal)),
        vat_amount=vat_amount,
        total=_money(discounted + vat_amount),
        points_earned=points_to_earn(discounted) if earns_points else 0,
    )


def pos_sale_description(item_count: int) -> str:
    return f"{POS_SALE_PREFIX} - {item_count} item(s)"
