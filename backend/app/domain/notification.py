"""
In-app notifications derived from deadlines, invoices and stock levels

Nothing here is stored: the list is rebuilt on every request. Only the
ids the user has read or dismissed are persisted (see NotificationService).
"""
from datetime import date, datetime, time, timezone
from typing import Iterable, List, Literal, Optional, Set

from pydantic import BaseModel

from app.core.constants import DEADLINE_URGENT_DAYS, DEADLINE_WARNING_DAYS
from app.domain.deadline import Deadline
from app.domain.formatting import days_until, format_amount, plural
from app.domain.invoice import Invoice
from app.domain.product import Product

NotificationType = Literal["deadline", "warning", "invoice", "info"]


class Notification(BaseModel):
    id: str
    title: str
    message: str
    type: NotificationType
    is_read: bool = False
    created_at: datetime


class NotificationList(BaseModel):
    notifications: List[Notification]
    unread_count: int


def _at_midnight(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _penalty_suffix(label: str, penalty) -> str:
    return f" {label}: KES {format_amount(penalty)}" if penalty else ""


def _deadline_notification(deadline: Deadline, today: date) -> Optional[Notification]:
    remaining = days_until(deadline.due_date, today)

    if 0 <= remaining <= DEADLINE_WARNING_DAYS:
        if remaining == 0:
            message = "Due today! Complete this to avoid penalties."
        else:
            message = f"Due in {plural(remaining, 'day')}.{_penalty_suffix('Penalty', deadline.penalty)}"
        return Notification(
            id=f"deadline-{deadline.id}",
            title=deadline.title,
            message=message,
            type="warning" if remaining <= DEADLINE_URGENT_DAYS else "deadline",
            created_at=_at_midnight(deadline.due_date),
        )

    if remaining < 0:
        overdue = abs(remaining)
        return Notification(
            id=f"deadline-overdue-{deadline.id}",
            title=f"{deadline.title} is OVERDUE",
            message=(
                f"This was due {plural(overdue, 'day')} ago."
                f"{_penalty_suffix('Potential penalty', deadline.penalty)}"
            ),
            type="warning",
            created_at=_at_midnight(deadline.due_date),
        )

    return None


def _invoice_notification(invoice: Invoice, today: date) -> Notification:
    due = invoice.due_date or invoice.created_at.date()
    overdue = max(0, -days_until(due, today))
    return Notification(
        id=f"invoice-overdue-{invoice.id}",
        title=f"Invoice {invoice.invoice_number} is overdue",
        message=(
            f"Payment from {invoice.customer_name} is {plural(overdue, 'day')} overdue. "
            f"Amount: KES {format_amount(invoice.total)}"
        ),
        type="invoice",
        created_at=_at_midnight(due),
    )


def _stock_notification(product: Product) -> Notification:
    created_at = product.updated_at or product.created_at or datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return Notification(
        id=f"stock-{product.id}",
        title="Low Stock Alert",
        message=(
            f"{product.name} is running low. "
            f"Current: {product.quantity}, Minimum: {product.minimum_stock}"
        ),
        type="warning",
        created_at=created_at,
    )


def build_notifications(
    deadlines: Iterable[Deadline],
    invoices: Iterable[Invoice],
    products: Iterable[Product],
    read_ids: Optional[Set[str]] = None,
    dismissed_ids: Optional[Set[str]] = None,
    today: Optional[date] = None,
) -> NotificationList:
    """
    Build the notification panel contents

    Sources:
        - open deadlines due within the next 7 days, or already past due
        - invoices with status ``overdue``
        - products at or below their minimum stock

    Dismissed ids are dropped, read ids are flagged. Unread notifications
    come first, newest first within each group.
    """
    read_ids = read_ids or set()
    dismissed_ids = dismissed_ids or set()
    today = today or date.today()

    candidates: List[Notification] = []

    for deadline in deadlines:
        if deadline.is_completed:
            continue
        notification = _deadline_notification(deadline, today)
        if notification:
            candidates.append(notification)

    for invoice in invoices:
        if invoice.status == "overdue":
            candidates.append(_invoice_notification(invoice, today))

    for product in products:
        if product.is_low_stock:
            candidates.append(_stock_notification(product))

    notifications = [n for n in candidates if n.id not in dismissed_ids]
    for notification in notifications:
        notification.is_read = notification.id in read_ids

    notifications.sort(key=lambda n: n.created_at, reverse=True)
    notifications.sort(key=lambda n: n.is_read)

    return NotificationList(
        notifications=notifications,
        unread_count=sum(1 for n in notifications if not n.is_read),
    )
