"""
Sequential order / account numbers: ``prefix + zero padded counter``.

The next number is derived from the most recent ``NUMBER_LOOKBACK`` rows that
share the prefix, not from a dedicated counter. Two concurrent creates can
compute the same value; the unique constraint on the column is what rejects
the second one.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from .config import NUMBER_LOOKBACK
from .models import Customer, Order, Settings, SETTINGS_ID

logger = logging.getLogger(__name__)

DEFAULT_ORDER_PREFIX = "ORD-"
DEFAULT_CUSTOMER_PREFIX = "CUST-"
DEFAULT_START_NUMBER = 1
DEFAULT_WIDTH = 4


@dataclass(frozen=True)
class NumberFormat:
    prefix: str
    start: int = DEFAULT_START_NUMBER
    width: int = DEFAULT_WIDTH


def order_number_format(settings: Optional[Settings]) -> NumberFormat:
    if settings is None:
        return NumberFormat(DEFAULT_ORDER_PREFIX)
    return NumberFormat(
        prefix=settings.order_prefix or DEFAULT_ORDER_PREFIX,
        start=settings.order_start_number or DEFAULT_START_NUMBER,
        width=settings.order_number_width or DEFAULT_WIDTH,
    )


def customer_number_format(settings: Optional[Settings]) -> NumberFormat:
    if settings is None:
        return NumberFormat(DEFAULT_CUSTOMER_PREFIX)
    return NumberFormat(
        prefix=settings.customer_prefix or DEFAULT_CUSTOMER_PREFIX,
        start=settings.customer_start_number or DEFAULT_START_NUMBER,
        width=settings.customer_number_width or DEFAULT_WIDTH,
    )


def next_in_sequence(existing: Iterable[str], fmt: NumberFormat) -> str:
    """Pick the number after the highest ``prefix + digits`` value in ``existing``."""
    pattern = re.compile(rf"^{re.escape(fmt.prefix)}(\d+)$")
    highest = fmt.start - 1

    for identifier in existing:
        match = pattern.match(identifier or "")
        if match:
            highest = max(highest, int(match.group(1)))

    return f"{fmt.prefix}{str(highest + 1).zfill(fmt.width)}"


def _recent_with_prefix(db: Session, column, id_column, prefix: str, lookback: int):
    rows = (
        db.query(column)
        .filter(column.startswith(prefix, autoescape=True))
        # SQLite LIKE folds ASCII case; keep "ord-" rows out of the window
        .filter(func.substr(column, 1, len(prefix)) == prefix)
        .order_by(id_column.desc())
        .limit(lookback)
        .all()
    )
    return [value for (value,) in rows]


def generate_order_number(db: Session, lookback: int = NUMBER_LOOKBACK) -> str:
    fmt = order_number_format(db.get(Settings, SETTINGS_ID))
    recent = _recent_with_prefix(db, Order.order_number, Order.id, fmt.prefix, lookback)
    number = next_in_sequence(recent, fmt)
    logger.info("Generated order number %s (scanned %d)", number, len(recent))
    return number


def generate_account_number(db: Session, lookback: int = NUMBER_LOOKBACK) -> str:
    fmt = customer_number_format(db.get(Settings, SETTINGS_ID))
    recent = _recent_with_prefix(db, Customer.account_number, Customer.id, fmt.prefix, lookback)
    number = next_in_sequence(recent, fmt)
    logger.info("Generated account number %s (scanned %d)", number, len(recent))
    return number
