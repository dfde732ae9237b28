from typing import List, Optional, Union

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from . import storage
from .broadcaster import OrderBroadcaster, get_broadcaster
from .database import get_db
from .errors import NotFound, ValidationFailed
from .locks import order_locks
from .schemas import MessageOut, OrderCreate, OrderOut, OrderUpdate, order_payload
from .security import get_current_admin

router = APIRouter(prefix="/api/orders", tags=["orders"])

ORDER_NOT_FOUND = "لم يتم العثور على الطلبية"
PHONE_NOT_FOUND = "لم يتم العثور على طلبيات بهذا الرقم"
DUPLICATE_ORDER_NUMBER = "رقم الطلبية موجود بالفعل"
CUSTOMER_NOT_FOUND = "العميل غير موجود"

# Fields that can be changed but never cleared
NON_NULLABLE = ("order_number", "customer_name", "phone_number", "order_status")


def _check_order_number_free(db: Session, order_number: str):
    if storage.get_order_by_number(db, order_number):
        raise ValidationFailed(DUPLICATE_ORDER_NUMBER, {"orderNumber": [DUPLICATE_ORDER_NUMBER]})


def _check_customer_exists(db: Session, customer_id: Optional[int]):
    if customer_id is not None and storage.get_customer(db, customer_id) is None:
        raise ValidationFailed(CUSTOMER_NOT_FOUND, {"customerId": [CUSTOMER_NOT_FOUND]})


@router.get("/track", response_model=Union[OrderOut, List[OrderOut]])
def track_order(
    order_number: Optional[str] = Query(None, alias="orderNumber"),
    phone_number: Optional[str] = Query(None, alias="phoneNumber"),
    query: Optional[str] = Query(None, description="Order number or phone number"),
    db: Session = Depends(get_db),
):
    """
    Public lookup. ``orderNumber`` returns one order, ``phoneNumber`` returns
    every order for that phone, and ``query`` tries the order number first and
    falls back to the phone number.
    """
    order_number = (order_number or "").strip()
    phone_number = (phone_number or "").strip()
    query = (query or "").strip()

    if order_number:
        order = storage.get_order_by_number(db, order_number)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)
        return OrderOut.model_validate(order)

    if phone_number:
        orders = storage.get_orders_by_phone(db, phone_number)
        if not orders:
            raise NotFound(PHONE_NOT_FOUND)
        return [OrderOut.model_validate(o) for o in orders]

    if query:
        order = storage.get_order_by_number(db, query)
        if order is not None:
            return OrderOut.model_validate(order)
        orders = storage.get_orders_by_phone(db, query)
        if orders:
            return [OrderOut.model_validate(o) for o in orders]
        raise NotFound(ORDER_NOT_FOUND)

    raise ValidationFailed("يرجى إدخال رقم الطلبية أو رقم الهاتف")


@router.get("", response_model=List[OrderOut], dependencies=[Depends(get_current_admin)])
def list_orders(db: Session = Depends(get_db)):
    return storage.list_orders(db)


@router.get("/search/{query}", response_model=List[OrderOut], dependencies=[Depends(get_current_admin)])
def search_orders(query: str, db: Session = Depends(get_db)):
    return storage.search_orders(db, query)


@router.get("/{order_id}", response_model=OrderOut, dependencies=[Depends(get_current_admin)])
def get_order(order_id: int, db: Session = Depends(get_db)):
    order = storage.get_order(db, order_id)
    if order is None:
        raise NotFound(ORDER_NOT_FOUND)
    return order


@router.post("", response_model=OrderOut, status_code=201, dependencies=[Depends(get_current_admin)])
def create_order(
    payload: OrderCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    broadcaster: OrderBroadcaster = Depends(get_broadcaster),
):
    data = payload.model_dump()
    if data["order_number"]:
        _check_order_number_free(db, data["order_number"])
    _check_customer_exists(db, data["customer_id"])

    # A generated number that races another create surfaces as DuplicateIdentifier (409).
    order = storage.create_order(db, data)
    background_tasks.add_task(broadcaster.broadcast_order_create, order_payload(order))
    return order


@router.put("/{order_id}", response_model=OrderOut, dependencies=[Depends(get_current_admin)])
def update_order(
    order_id: int,
    payload: OrderUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    broadcaster: OrderBroadcaster = Depends(get_broadcaster),
):
    data = payload.model_dump(exclude_unset=True)
    for field in NON_NULLABLE:
        if field in data and data[field] is None:
            del data[field]

    with order_locks.hold(order_id):
        order = storage.get_order(db, order_id)
        if order is None:
            raise NotFound(ORDER_NOT_FOUND)

        if data.get("order_number") and data["order_number"] != order.order_number:
            _check_order_number_free(db, data["order_number"])
        if "customer_id" in data:
            _check_customer_exists(db, data["customer_id"])

        order = storage.update_order(db, order, data)

    background_tasks.add_task(broadcaster.broadcast_order_update, order_payload(order))
    return order


@router.delete("/{order_id}", response_model=MessageOut, dependencies=[Depends(get_current_admin)])
def delete_order(
    order_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    broadcaster: OrderBroadcaster = Depends(get_broadcaster),
):
    with order_locks.hold(order_id):
        if not storage.delete_order(db, order_id):
            raise NotFound(ORDER_NOT_FOUND)

    background_tasks.add_task(broadcaster.broadcast_order_delete, order_id)
    return {"message": "تم حذف الطلبية بنجاح"}
