from enum import Enum

from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

from . import status_history
from .status_history import utcnow

Base = declarative_base()


class OrderStatus(str, Enum):
    RECEIVED = "تم استلام الطلب"
    PAYMENT_CONFIRMED = "تم تأكيد الدفع"
    PURCHASED = "تم الشراء من الموقع"
    SHIPPING_FROM_SOURCE = "قيد الشحن من المصدر"
    IN_TRANSIT_COUNTRY = "وصلت إلى بلد العبور"
    ARRIVED_LIBYA = "وصلت إلى ليبيا"
    OUT_FOR_DELIVERY = "قيد التوصيل"
    DELIVERED = "تم التسليم"
    CANCELLED = "ملغاة / توجد مشكلة"


ORDER_STATUSES = [s.value for s in OrderStatus]
DEFAULT_STATUS = OrderStatus.RECEIVED.value

SETTINGS_ID = 1


class StatusHistoryType(TypeDecorator):
    """JSON text column that always loads as a dict of status -> ISO timestamp."""

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return status_history.dump(status_history.load(value))

    def process_result_value(self, value, dialect):
        return status_history.load(value)


class User(Base):
    __tablename__ = 'users'
    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)  # bcrypt hash


class Customer(Base):
    __tablename__ = 'customers'
    id = Column(Integer, primary_key=True)
    account_number = Column(String(50), unique=True, nullable=False, index=True)
    password = Column(String, nullable=False)  # bcrypt hash
    name = Column(String, nullable=False)
    phone_number = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    orders = relationship("Order", back_populates="customer")


class Order(Base):
    __tablename__ = 'orders'
    id = Column(Integer, primary_key=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey('customers.id', ondelete="SET NULL"), nullable=True, index=True)
    customer_name = Column(String, nullable=False)
    phone_number = Column(String(20), nullable=False, index=True)
    order_status = Column(String, nullable=False, default=DEFAULT_STATUS)
    estimated_delivery_date = Column(String)  # free text, e.g. "2024-06-01" or "next week"
    admin_notes = Column(Text)
    order_value = Column(Numeric(12, 2))
    items_count = Column(Integer)
    shipping_cost = Column(Numeric(12, 2))
    status_timestamps = Column(StatusHistoryType, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    customer = relationship("Customer", back_populates="orders")


class Settings(Base):
    __tablename__ = 'settings'
    id = Column(Integer, primary_key=True, default=SETTINGS_ID)  # singleton row
    company_name = Column(String)
    company_logo = Column(Text)
    company_address = Column(String)
    company_phone = Column(String)
    company_email = Column(String)
    company_website = Column(String)
    order_prefix = Column(String)
    order_start_number = Column(Integer)
    order_number_width = Column(Integer)
    customer_prefix = Column(String)
    customer_start_number = Column(Integer)
    customer_number_width = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
