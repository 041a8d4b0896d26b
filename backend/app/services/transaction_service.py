"""
Transaction Service
Cash book entries with VAT filled in for VAT-applicable amounts
"""
import logging
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional

from app.core.constants import VAT_RATE
from app.core.errors import ResourceNotFoundError
from app.domain.transaction import Transaction, TransactionCreate, TransactionUpdate
from app.repositories import TransactionRepository

logger = logging.getLogger(__name__)


def vat_on(amount: Decimal) -> Decimal:
    """VAT charged on a cash book amount at the standard rate"""
    return (Decimal(amount) * VAT_RATE).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class TransactionService:

    def __init__(self):
        self.transaction_repo = TransactionRepository()

    def list_transactions(
        self,
        user_id: str,
        type: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        category: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> List[Transaction]:
        return self.transaction_repo.find_all(
            user_id,
            type=type,
            start_date=start_date,
            end_date=end_date,
            category=category,
            limit=limit,
            offset=offset,
        )

    def get_transaction(self, user_id: str, transaction_id: str) -> Transaction:
        transaction = self.transaction_repo.find_by_id(user_id, transaction_id)
        if not transaction:
            raise ResourceNotFoundError("Transaction", transaction_id)
        return transaction

    def create_transaction(self, user_id: str, data: TransactionCreate) -> Transaction:
        if not data.is_vat_applicable:
            data = data.model_copy(update={"vat_amount": Decimal("0")})
        elif not data.vat_amount:
            data = data.model_copy(update={"vat_amount": vat_on(data.amount)})

        transaction = self.transaction_repo.create(user_id, data)
        logger.info(f"Recorded {data.type} {transaction.id} for user {user_id}: {data.amount}")
        return transaction

    def update_transaction(self, user_id: str, transaction_id: str, updates: TransactionUpdate) -> Transaction:
        """
        Apply an edit

        When the amount or the VAT flag changes without an explicit VAT
        amount, VAT is recomputed from the resulting amount.
        """
        if updates.vat_amount is None and (updates.amount is not None or updates.is_vat_applicable is not None):
            current = self.get_transaction(user_id, transaction_id)
            amount = updates.amount if updates.amount is not None else current.amount
            applicable = (
                updates.is_vat_applicable if updates.is_vat_applicable is not None else current.is_vat_applicable
            )
            updates = updates.model_copy(
                update={"vat_amount": vat_on(amount) if applicable else Decimal("0")}
            )

        transaction = self.transaction_repo.update(user_id, transaction_id, updates)
        if not transaction:
            raise ResourceNotFoundError("Transaction", transaction_id)
        return transaction

    def delete_transaction(self, user_id: str, transaction_id: str) -> None:
        if not self.transaction_repo.delete(user_id, transaction_id):
            raise ResourceNotFoundError("Transaction", transaction_id)
        logger.info(f"Deleted transaction {transaction_id} for user {user_id}")
