import logging
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from . import storage
from .database import get_db
from .errors import NotFound, ValidationFailed
from .models import Customer
from .schemas import (
    ChangePasswordIn,
    CustomerCreate,
    CustomerLoginIn,
    CustomerLoginOut,
    CustomerOut,
    CustomerUpdate,
    MessageOut,
    OrderOut,
)
from .security import CUSTOMER, authenticate, get_current_admin, get_current_customer, hash_password, issue_token, verify_password

logger = logging.getLogger(__name__)

CUSTOMER_NOT_FOUND = "لم يتم العثور على العميل"
DUPLICATE_ACCOUNT_NUMBER = "رقم الحساب موجود بالفعل"
MIN_PASSWORD_LENGTH = 6

# Admin management of customer accounts
router = APIRouter(prefix="/api/customers", tags=["customers"], dependencies=[Depends(get_current_admin)])

# The customer's own portal
portal_router = APIRouter(prefix="/api/customer", tags=["customer"])


def _get_or_404(db: Session, customer_id: int) -> Customer:
    customer = storage.get_customer(db, customer_id)
    if customer is None:
        raise NotFound(CUSTOMER_NOT_FOUND)
    return customer


def _check_account_number_free(db: Session, account_number: str):
    if storage.get_customer_by_account_number(db, account_number):
        raise ValidationFailed(DUPLICATE_ACCOUNT_NUMBER, {"accountNumber": [DUPLICATE_ACCOUNT_NUMBER]})


@router.post("", response_model=CustomerOut, status_code=201)
def create_customer(payload: CustomerCreate, db: Session = Depends(get_db)):
    data = payload.model_dump()
    if data["account_number"]:
        _check_account_number_free(db, data["account_number"])

    data["password"] = hash_password(data["password"])
    customer = storage.create_customer(db, data)
    logger.info("Created customer %s", customer.account_number)
    return customer


@router.get("", response_model=List[CustomerOut])
def list_customers(db: Session = Depends(get_db)):
    return storage.list_customers(db)


@router.get("/{customer_id}", response_model=CustomerOut)
def get_customer(customer_id: int, db: Session = Depends(get_db)):
    return _get_or_404(db, customer_id)


@router.get("/{customer_id}/orders", response_model=List[OrderOut])
def get_customer_orders(customer_id: int, db: Session = Depends(get_db)):
    return storage.get_orders_for_customer(db, _get_or_404(db, customer_id))


@router.put("/{customer_id}", response_model=CustomerOut)
def update_customer(customer_id: int, payload: CustomerUpdate, db: Session = Depends(get_db)):
    customer = _get_or_404(db, customer_id)

    data = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    if data.get("account_number") and data["account_number"] != customer.account_number:
        _check_account_number_free(db, data["account_number"])
    if "password" in data:
        data["password"] = hash_password(data["password"])

    return storage.update_customer(db, customer, data)


@router.delete("/{customer_id}", response_model=MessageOut)
def delete_customer(customer_id: int, db: Session = Depends(get_db)):
    if not storage.delete_customer(db, customer_id):
        raise NotFound(CUSTOMER_NOT_FOUND)
    return {"message": "تم حذف العميل بنجاح"}


# --- Customer portal ---

@portal_router.post("/login", response_model=CustomerLoginOut)
def customer_login(credentials: CustomerLoginIn, db: Session = Depends(get_db)):
    customer = authenticate(db, credentials.lookup_value, credentials.password, CUSTOMER)
    return {"token": issue_token(customer), "customer": customer}


@portal_router.get("/profile", response_model=CustomerOut)
def customer_profile(customer: Customer = Depends(get_current_customer)):
    return customer


@portal_router.get("/orders", response_model=List[OrderOut])
def customer_orders(customer: Customer = Depends(get_current_customer), db: Session = Depends(get_db)):
    return storage.get_orders_for_customer(db, customer)


@portal_router.put("/change-password", response_model=MessageOut)
def change_password(
    payload: ChangePasswordIn,
    customer: Customer = Depends(get_current_customer),
    db: Session = Depends(get_db),
):
    if len(payload.new_password) < MIN_PASSWORD_LENGTH:
        message = "كلمة المرور الجديدة يجب أن تكون 6 أحرف على الأقل"
        raise ValidationFailed(message, {"newPassword": [message]})

    if not verify_password(payload.current_password, customer.password):
        message = "كلمة المرور الحالية غير صحيحة"
        raise ValidationFailed(message, {"currentPassword": [message]})

    storage.update_customer(db, customer, {"password": hash_password(payload.new_password)})
    logger.info("Customer %s changed password", customer.account_number)
    return {"message": "تم تحديث كلمة المرور بنجاح"}
