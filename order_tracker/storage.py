"""
Persistence gateway: every read and write of orders, customers, admin users
and the settings row goes through these functions.

Write helpers commit on success. A unique-constraint violation on an order or
account number rolls the session back and raises ``DuplicateIdentifier``.
"""

import logging
from typing import List, Optional

from sqlalchemy import String, func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import numbering, status_history
from .errors import DuplicateIdentifier
from .models import Customer, Order, Settings, User, DEFAULT_STATUS, SETTINGS_ID
from .status_history import utcnow

logger = logging.getLogger(__name__)


def _commit(db: Session, field: str, value: str):
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning("Duplicate %s %s: %s", field, value, e.orig)
        raise DuplicateIdentifier(field, value) from e


# --- Users ---

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.query(User).filter(User.username == username).first()


def create_user(db: Session, username: str, password_hash: str) -> User:
    user = User(username=username, password=password_hash)
    db.add(user)
    _commit(db, "username", username)
    db.refresh(user)
    return user


# --- Orders ---

def get_order(db: Session, order_id: int) -> Optional[Order]:
    return db.get(Order, order_id)


def get_order_by_number(db: Session, order_number: str) -> Optional[Order]:
    return db.query(Order).filter(Order.order_number == order_number).first()


def get_orders_by_phone(db: Session, phone_number: str) -> List[Order]:
    return (
        db.query(Order)
        .filter(Order.phone_number == phone_number)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def list_orders(db: Session) -> List[Order]:
    return db.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()


def search_orders(db: Session, query: str) -> List[Order]:
    # % and _ in the query are matched literally
    needle = query.lower()
    columns = (Order.order_number, Order.phone_number, Order.customer_name)
    return (
        db.query(Order)
        .filter(or_(*(func.lower(c, type_=String).contains(needle, autoescape=True) for c in columns)))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


def create_order(db: Session, data: dict) -> Order:
    """
    Insert an order. A missing or blank ``order_number`` is generated from the
    numbering settings; the status history is seeded with the initial status.
    """
    values = dict(data)
    if not (values.get("order_number") or "").strip():
        values["order_number"] = numbering.generate_order_number(db)

    now = utcnow()
    status = values.get("order_status") or DEFAULT_STATUS
    values["order_status"] = status

    order = Order(
        **values,
        status_timestamps=status_history.seed(status, now),
        created_at=now,
        updated_at=now,
    )
    db.add(order)
    _commit(db, "order_number", values["order_number"])
    db.refresh(order)
    return order


def update_order(db: Session, order: Order, data: dict) -> Order:
    new_status = data.get("order_status")
    if new_status:
        order.status_timestamps = status_history.record_transition(
            order.status_timestamps,
            new_status,
            initial_status=order.order_status or DEFAULT_STATUS,
            created_at=order.created_at,
        )

    for field, value in data.items():
        setattr(order, field, value)
    order.updated_at = utcnow()

    _commit(db, "order_number", order.order_number)
    db.refresh(order)
    return order


def delete_order(db: Session, order_id: int) -> bool:
    order = db.get(Order, order_id)
    if order is None:
        return False
    db.delete(order)
    db.commit()
    return True


# --- Customers ---

def get_customer(db: Session, customer_id: int) -> Optional[Customer]:
    return db.get(Customer, customer_id)


def get_customer_by_account_number(db: Session, account_number: str) -> Optional[Customer]:
    return db.query(Customer).filter(Customer.account_number == account_number).first()


def get_customer_by_phone(db: Session, phone_number: str) -> Optional[Customer]:
    return (
        db.query(Customer)
        .filter(Customer.phone_number == phone_number)
        .order_by(Customer.id)
        .first()
    )


def find_customer(db: Session, identifier: str) -> Optional[Customer]:
    """Resolve a login identifier: account number first, then phone number."""
    return get_customer_by_account_number(db, identifier) or get_customer_by_phone(db, identifier)


def list_customers(db: Session) -> List[Customer]:
    return db.query(Customer).order_by(Customer.created_at.desc(), Customer.id.desc()).all()


def create_customer(db: Session, data: dict) -> Customer:
    """``data['password']`` must already be hashed."""
    values = dict(data)
    if not (values.get("account_number") or "").strip():
        values["account_number"] = numbering.generate_account_number(db)

    now = utcnow()
    customer = Customer(**values, created_at=now, updated_at=now)
    db.add(customer)
    _commit(db, "account_number", values["account_number"])
    db.refresh(customer)
    return customer


def update_customer(db: Session, customer: Customer, data: dict) -> Customer:
    for field, value in data.items():
        setattr(customer, field, value)
    customer.updated_at = utcnow()

    _commit(db, "account_number", customer.account_number)
    db.refresh(customer)
    return customer


def delete_customer(db: Session, customer_id: int) -> bool:
    customer = db.get(Customer, customer_id)
    if customer is None:
        return False

    # Orders outlive their customer; they just lose the link.
    db.query(Order).filter(Order.customer_id == customer_id).update(
        {Order.customer_id: None}, synchronize_session=False
    )
    db.delete(customer)
    db.commit()
    return True


def get_orders_for_customer(db: Session, customer: Customer) -> List[Order]:
    """Orders linked to the customer, plus unlinked ones placed with the same phone number."""
    return (
        db.query(Order)
        .filter(or_(Order.customer_id == customer.id, Order.phone_number == customer.phone_number))
        .order_by(Order.created_at.desc(), Order.id.desc())
        .all()
    )


# --- Settings ---

def get_settings(db: Session) -> Optional[Settings]:
    return db.get(Settings, SETTINGS_ID)


def update_settings(db: Session, data: dict) -> Settings:
    settings = get_settings(db)
    now = utcnow()
    if settings is None:
        settings = Settings(id=SETTINGS_ID, created_at=now)
        db.add(settings)

    for field, value in data.items():
        setattr(settings, field, value)
    settings.updated_at = now

    db.commit()
    db.refresh(settings)
    return settings
