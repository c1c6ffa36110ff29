"""
Remaining (leftover) products and their expiry dates.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import List, Optional

from .data.models import RemainingItem

MANUAL_SOURCE = "Added manually"

# Expiry levels
EXPIRED = "expired"
TODAY = "today"
SOON = "soon"
FINE = "fine"


@dataclass
class ExpiryStatus:
    level: str
    text: str


def add_item(
    items: List[RemainingItem],
    name: str,
    quantity: str,
    expiry_date: str,
    now: Optional[datetime] = None,
) -> List[RemainingItem]:
    """
    Add a manually entered leftover.

    Raises:
        ValueError: If name, quantity or expiry date is empty, or the date is
            not ISO formatted
    """
    if not name or not quantity or not expiry_date:
        raise ValueError("Name, quantity and expiry date are required")
    date.fromisoformat(expiry_date)

    now = now or datetime.now()
    item = RemainingItem(
        id=str(int(now.timestamp() * 1000)),
        name=name,
        quantity=quantity,
        expiry_date=expiry_date,
        source=MANUAL_SOURCE,
    )
    return items + [item]


def delete_item(items: List[RemainingItem], item_id: str) -> List[RemainingItem]:
    return [item for item in items if item.id != item_id]


def sort_by_expiry(items: List[RemainingItem]) -> List[RemainingItem]:
    return sorted(items, key=lambda item: date.fromisoformat(item.expiry_date[:10]))


def expiry_status(expiry_date: str, today: Optional[date] = None) -> ExpiryStatus:
    """Classify how close a product is to its expiry date."""
    today = today or date.today()
    expiry = date.fromisoformat(expiry_date[:10])
    days_left = (expiry - today).days

    if days_left < 0:
        return ExpiryStatus(EXPIRED, "Expired")
    if days_left <= 1:
        return ExpiryStatus(TODAY, "Expires today!")
    if days_left <= 3:
        return ExpiryStatus(SOON, f"Expires in {days_left} days")
    return ExpiryStatus(FINE, f"Until {expiry.isoformat()}")
