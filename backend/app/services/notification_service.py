"""
Notification Service
Builds the notification panel and remembers what the user read or dismissed
"""
import json
import logging
from datetime import date
from typing import Optional, Set

from app.domain.notification import NotificationList, build_notifications
from app.repositories import (
    CatalogRepository,
    DeadlineRepository,
    InvoiceRepository,
    ProductRepository,
)

logger = logging.getLogger(__name__)

NOTIFICATION_KEY_PREFIX = "notifications:"


def notification_state_key(user_id: str, kind: str) -> str:
    """app_settings key holding a user's read or dismissed ids"""
    return f"{NOTIFICATION_KEY_PREFIX}{user_id}:{kind}"


class NotificationService:

    def __init__(self):
        self.deadline_repo = DeadlineRepository()
        self.invoice_repo = InvoiceRepository()
        self.product_repo = ProductRepository()
        self.settings_repo = CatalogRepository()

    def _load_ids(self, user_id: str, kind: str) -> Set[str]:
        raw = self.settings_repo.get_setting(notification_state_key(user_id, kind))
        if not raw:
            return set()
        try:
            return set(json.loads(raw))
        except (ValueError, TypeError):
            logger.warning(f"Discarding unreadable notification state for {user_id} ({kind})")
            return set()

    def _save_ids(self, user_id: str, kind: str, ids: Set[str]) -> None:
        self.settings_repo.set_setting(notification_state_key(user_id, kind), json.dumps(sorted(ids)))

    def list_notifications(self, user_id: str, today: Optional[date] = None) -> NotificationList:
        deadlines = self.deadline_repo.find_all(user_id, include_completed=False)
        invoices = self.invoice_repo.find_all(user_id, status="overdue")
        products, _ = self.product_repo.find_all(user_id, low_stock_only=True)

        return build_notifications(
            deadlines,
            invoices,
            products,
            read_ids=self._load_ids(user_id, "read"),
            dismissed_ids=self._load_ids(user_id, "dismissed"),
            today=today,
        )

    def mark_read(self, user_id: str, notification_id: str) -> None:
        read_ids = self._load_ids(user_id, "read")
        if notification_id not in read_ids:
            read_ids.add(notification_id)
            self._save_ids(user_id, "read", read_ids)

    def mark_all_read(self, user_id: str, today: Optional[date] = None) -> int:
        """Mark every current notification read; returns how many were unread"""
        current = self.list_notifications(user_id, today)
        unread = {n.id for n in current.notifications if not n.is_read}
        if unread:
            self._save_ids(user_id, "read", self._load_ids(user_id, "read") | unread)
        return len(unread)

    def dismiss(self, user_id: str, notification_id: str) -> None:
        dismissed = self._load_ids(user_id, "dismissed")
        dismissed.add(notification_id)
        self._save_ids(user_id, "dismissed", dismissed)
        logger.debug(f"User {user_id} dismissed notification {notification_id}")
