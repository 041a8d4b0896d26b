"""
POS Service
Till checkout: stock, loyalty points and the cash book entry for one sale
"""
import logging
from datetime import date
from typing import Dict, List, Optional

from app.core.errors import InvalidRequestError, ResourceNotFoundError
from app.domain.loyalty import LoyaltyCustomer, discount_for_points, max_redeemable_points
from app.domain.pos import (
    CheckoutRequest,
    PosReceipt,
    ReceiptLine,
    calculate_pos_totals,
    pos_sale_description,
)
from app.domain.transaction import TransactionCreate
from app.repositories import (
    LoyaltyRepository,
    ProductRepository,
    ProfileRepository,
    TransactionRepository,
)
from app.repositories.product_repository import InsufficientStockError

logger = logging.getLogger(__name__)


class PosService:

    def __init__(self):
        self.product_repo = ProductRepository()
        self.loyalty_repo = LoyaltyRepository()
        self.profile_repo = ProfileRepository()
        self.transaction_repo = TransactionRepository()

    # ========================================
    # Loyalty customers
    # ========================================

    def lookup_loyalty_customer(self, user_id: str, phone: str) -> LoyaltyCustomer:
        customer = self.loyalty_repo.find_by_phone(user_id, phone.strip())
        if not customer:
            raise ResourceNotFoundError("Loyalty customer", phone)
        return customer

    def register_loyalty_customer(self, user_id: str, phone: str, name: Optional[str] = None) -> LoyaltyCustomer:
        phone = phone.strip()
        if self.loyalty_repo.find_by_phone(user_id, phone):
            raise InvalidRequestError("Customer already registered", details={"phone": phone})
        return self.loyalty_repo.create_customer(user_id, phone, name)

    def list_loyalty_customers(self, user_id: str, search: Optional[str] = None) -> List[LoyaltyCustomer]:
        return self.loyalty_repo.list_customers(user_id, search=search)

    # ========================================
    # Checkout
    # ========================================

    def _priced_lines(self, user_id: str, request: CheckoutRequest) -> List[ReceiptLine]:
        """One receipt line per product; repeated cart lines are summed"""
        quantities: Dict[str, int] = {}
        for item in request.items:
            quantities[item.product_id] = quantities.get(item.product_id, 0) + item.quantity

        lines = []
        for product_id, quantity in quantities.items():
            product = self.product_repo.find_by_id(user_id, product_id)
            if not product:
                raise ResourceNotFoundError("Product", product_id)
            if quantity > product.quantity:
                raise InvalidRequestError(
                    f"Insufficient stock for {product.name}",
                    details={"product_id": product.id, "available": product.quantity, "requested": quantity},
                )
            lines.append(ReceiptLine(
                product_id=product.id,
                description=product.name,
                quantity=quantity,
                unit_price=product.unit_price,
                total=product.unit_price * quantity,
            ))
        return lines

    def checkout(self, user_id: str, request: CheckoutRequest, today: Optional[date] = None) -> PosReceipt:
        """
        Complete a sale

        Steps:
            1. Price the cart and check stock for every line
            2. Cap the redemption at the customer's balance and the cart value
            3. Decrement stock for the whole cart in one transaction
            4. Move loyalty points and write the earn/redeem ledger rows
            5. Record the sale in the cash book

        Raises:
            ResourceNotFoundError: unknown product or loyalty customer
            InvalidRequestError: not enough stock or points
        """
        lines = self._priced_lines(user_id, request)

        customer = None
        if request.loyalty_customer_id:
            customer = self.loyalty_repo.find_by_id(user_id, request.loyalty_customer_id)
            if not customer:
                raise ResourceNotFoundError("Loyalty customer", request.loyalty_customer_id)

        points_to_redeem = 0
        if customer and request.points_to_redeem:
            subtotal = sum((line.total for line in lines), 0)
            allowed = max_redeemable_points(customer.points_balance, subtotal)
            if request.points_to_redeem > allowed:
                raise InvalidRequestError(
                    "Cannot redeem that many points",
                    details={"requested": request.points_to_redeem, "max_redeemable": allowed},
                )
            points_to_redeem = request.points_to_redeem

        profile = self.profile_repo.get_by_user_id(user_id)
        vat_registered = bool(profile and profile.is_vat_registered)
        totals = calculate_pos_totals(lines, points_to_redeem, vat_registered, earns_points=customer is not None)

        try:
            remaining = self.product_repo.decrement_stock_many(
                user_id, [(line.product_id, line.quantity) for line in lines]
            )
        except InsufficientStockError as e:
            refused = next(line for line in lines if line.product_id == e.product_id)
            raise InvalidRequestError(
                f"Insufficient stock for {refused.description}",
                details={"product_id": e.product_id, "requested": e.requested},
            )
        logger.debug(f"Stock after sale: {remaining}")

        item_count = sum(line.quantity for line in lines)
        description = pos_sale_description(item_count)

        loyalty_balance = None
        if customer:
            updated = self.loyalty_repo.apply_sale(
                user_id, customer.id, earned=totals.points_earned, redeemed=points_to_redeem
            )
            loyalty_balance = updated.points_balance if updated else None

            if totals.points_earned > 0:
                self.loyalty_repo.add_transaction(
                    user_id, customer.id, "earn", totals.points_earned,
                    sale_amount=totals.total, description=description,
                )
            if points_to_redeem > 0:
                self.loyalty_repo.add_transaction(
                    user_id, customer.id, "redeem", points_to_redeem,
                    description=f"Redeemed for KES {discount_for_points(points_to_redeem)} discount",
                )

        customer_phone = customer.phone if customer else request.customer_phone
        mpesa_receipt = request.payment_reference if request.payment_method == "mpesa" else None

        transaction = self.transaction_repo.create(user_id, TransactionCreate(
            type="sale",
            amount=totals.total,
            description=description,
            category="product",
            date=today or date.today(),
            customer=(customer.name or customer.phone) if customer else request.customer_phone,
            is_vat_applicable=totals.vat_amount > 0,
            vat_amount=totals.vat_amount,
            payment_method=request.payment_method,
            payment_reference=request.payment_reference,
        ))

        logger.info(
            f"POS sale {transaction.id} for user {user_id}: {item_count} item(s), "
            f"total {totals.total} via {request.payment_method}"
        )

        return PosReceipt(
            transaction_id=transaction.id,
            items=lines,
            subtotal=totals.subtotal,
            loyalty_discount=totals.loyalty_discount,
            vat_amount=totals.vat_amount,
            total=totals.total,
            payment_method=request.payment_method,
            customer_phone=customer_phone,
            loyalty_points_earned=totals.points_earned,
            loyalty_points_redeemed=points_to_redeem,
            loyalty_balance=loyalty_balance,
            mpesa_receipt_number=mpesa_receipt,
        )
