"""
Display formatting shared by PDFs, emails and notifications
"""
from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Union

Number = Union[int, float, Decimal]


def format_kes(amount: Number) -> str:
    """KES 1,500 (whole shillings)"""
    whole = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if whole < 0:
        return f"-KES {abs(whole):,}"
    return f"KES {whole:,}"


def format_amount(amount: Number) -> str:
    """1,500 or 1,500.50, as used inside notification messages"""
    value = Decimal(str(amount))
    if value == value.to_integral_value():
        return f"{value.to_integral_value():,}"
    return f"{value.quantize(Decimal('0.01')):,}"


def format_date(value: Union[date, datetime]) -> str:
    """5 Jan 2025"""
    return f"{value.day} {value.strftime('%b %Y')}"


def days_until(target: Union[date, datetime], today: Optional[date] = None) -> int:
    """Whole calendar days from today to target (negative when past)"""
    if isinstance(target, datetime):
        target = target.date()
    today = today or date.today()
    return (target - today).days


def plural(count: int, word: str) -> str:
    return f"{count} {word}{'s' if abs(count) > 1 else ''}"
