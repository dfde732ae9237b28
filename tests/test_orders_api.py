import asyncio
from decimal import Decimal

from order_tracker import numbering, storage
from order_tracker.main import app
from order_tracker.models import OrderStatus

RECEIVED = OrderStatus.RECEIVED.value
PAID = OrderStatus.PAYMENT_CONFIRMED.value
DELIVERED = OrderStatus.DELIVERED.value

NEW_ORDER = {"customerName": "أحمد", "phoneNumber": "0920000000"}


def create(client, headers, **fields):
    r = client.post("/api/orders", json={**NEW_ORDER, **fields}, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()


def test_create_generates_first_order_number(client, admin_headers):
    order = create(client, admin_headers)

    assert order["orderNumber"] == "ORD-0001"
    assert order["orderStatus"] == RECEIVED
    assert list(order["statusTimestamps"]) == [RECEIVED]
    assert order["statusTimestamps"][RECEIVED] == order["createdAt"]


def test_create_with_blank_order_number_generates_one(client, admin_headers):
    create(client, admin_headers)
    assert create(client, admin_headers, orderNumber="")["orderNumber"] == "ORD-0002"


def test_create_with_all_fields(client, admin_headers):
    order = create(
        client, admin_headers,
        orderNumber="SHEIN-77",
        orderStatus=PAID,
        estimatedDeliveryDate="منتصف يونيو",
        adminNotes="fragile",
        orderValue="150.5",
        itemsCount=3,
        shippingCost=20,
    )
    assert order["orderNumber"] == "SHEIN-77"
    assert order["statusTimestamps"].keys() == {PAID}
    assert Decimal(order["orderValue"]) == Decimal("150.5")
    assert Decimal(order["shippingCost"]) == Decimal("20")
    assert order["itemsCount"] == 3
    assert order["estimatedDeliveryDate"] == "منتصف يونيو"


def test_explicit_duplicate_order_number_is_a_validation_error(client, admin_headers):
    create(client, admin_headers, orderNumber="ORD-0500")

    r = client.post("/api/orders", json={**NEW_ORDER, "orderNumber": "ORD-0500"}, headers=admin_headers)
    assert r.status_code == 400
    assert r.json()["message"] == "رقم الطلبية موجود بالفعل"


def test_generated_number_collision_is_a_conflict(client, admin_headers, monkeypatch):
    create(client, admin_headers, orderNumber="ORD-0001")
    monkeypatch.setattr(numbering, "generate_order_number", lambda db: "ORD-0001")

    r = client.post("/api/orders", json=NEW_ORDER, headers=admin_headers)
    assert r.status_code == 409
    assert "message" in r.json()


def test_create_validates_input(client, admin_headers):
    r = client.post("/api/orders", json={"phoneNumber": "1", "orderStatus": "shipped"}, headers=admin_headers)
    assert r.status_code == 400
    errors = r.json()["errors"]
    assert "customerName" in errors
    assert "orderStatus" in errors


def test_create_rejects_unknown_customer(client, admin_headers):
    r = client.post("/api/orders", json={**NEW_ORDER, "customerId": 999}, headers=admin_headers)
    assert r.status_code == 400
    assert "customerId" in r.json()["errors"]


def test_status_update_adds_history_entry(client, admin_headers):
    order = create(client, admin_headers)
    received_at = order["statusTimestamps"][RECEIVED]

    r = client.put(f"/api/orders/{order['id']}", json={"orderStatus": DELIVERED}, headers=admin_headers)
    assert r.status_code == 200
    updated = r.json()

    assert updated["orderStatus"] == DELIVERED
    assert updated["statusTimestamps"][RECEIVED] == received_at
    assert updated["statusTimestamps"][DELIVERED] >= received_at


def test_returning_to_earlier_status_keeps_first_timestamp(client, admin_headers):
    order = create(client, admin_headers)
    url = f"/api/orders/{order['id']}"
    received_at = order["statusTimestamps"][RECEIVED]

    client.put(url, json={"orderStatus": PAID}, headers=admin_headers)
    r = client.put(url, json={"orderStatus": RECEIVED}, headers=admin_headers)

    history = r.json()["statusTimestamps"]
    assert history[RECEIVED] == received_at
    assert list(history) == [RECEIVED, PAID]


def test_refetch_is_stable(client, admin_headers):
    order = create(client, admin_headers)
    client.put(f"/api/orders/{order['id']}", json={"orderStatus": PAID}, headers=admin_headers)

    first = client.get(f"/api/orders/{order['id']}", headers=admin_headers)
    second = client.get(f"/api/orders/{order['id']}", headers=admin_headers)
    assert first.content == second.content


def test_update_other_fields(client, admin_headers):
    order = create(client, admin_headers)
    r = client.put(
        f"/api/orders/{order['id']}",
        json={"adminNotes": "paid in cash", "orderStatus": None, "customerName": None},
        headers=admin_headers,
    )
    assert r.status_code == 200
    body = r.json()
    assert body["adminNotes"] == "paid in cash"
    assert body["orderStatus"] == RECEIVED
    assert body["customerName"] == NEW_ORDER["customerName"]
    assert body["statusTimestamps"] == order["statusTimestamps"]


def test_update_to_taken_order_number(client, admin_headers):
    create(client, admin_headers)
    second = create(client, admin_headers)

    r = client.put(f"/api/orders/{second['id']}", json={"orderNumber": "ORD-0001"}, headers=admin_headers)
    assert r.status_code == 400


def test_update_missing_order(client, admin_headers):
    r = client.put("/api/orders/999", json={"adminNotes": "x"}, headers=admin_headers)
    assert r.status_code == 404
    assert r.json()["message"] == "لم يتم العثور على الطلبية"


def test_delete(client, admin_headers):
    order = create(client, admin_headers)

    r = client.delete(f"/api/orders/{order['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert r.json() == {"message": "تم حذف الطلبية بنجاح"}

    assert client.get(f"/api/orders/{order['id']}", headers=admin_headers).status_code == 404
    assert client.delete(f"/api/orders/{order['id']}", headers=admin_headers).status_code == 404


def test_list_and_search(client, admin_headers):
    create(client, admin_headers, customerName="Fatima Ali")
    create(client, admin_headers, customerName="Omar", phoneNumber="0931111111")

    r = client.get("/api/orders", headers=admin_headers)
    assert [o["orderNumber"] for o in r.json()] == ["ORD-0002", "ORD-0001"]

    r = client.get("/api/orders/search/fatima", headers=admin_headers)
    assert [o["customerName"] for o in r.json()] == ["Fatima Ali"]

    r = client.get("/api/orders/search/0931", headers=admin_headers)
    assert [o["customerName"] for o in r.json()] == ["Omar"]


def test_search_treats_wildcards_literally(client, admin_headers):
    create(client, admin_headers, customerName="Omar")
    create(client, admin_headers, customerName="100% Cotton")

    r = client.get("/api/orders/search/%25", headers=admin_headers)
    assert [o["customerName"] for o in r.json()] == ["100% Cotton"]

    r = client.get("/api/orders/search/_", headers=admin_headers)
    assert r.json() == []


# --- Public tracking ---

def test_track_by_order_number(client, admin_headers):
    create(client, admin_headers)
    r = client.get("/api/orders/track", params={"orderNumber": "ORD-0001"})
    assert r.status_code == 200
    assert r.json()["orderNumber"] == "ORD-0001"


def test_track_by_phone_returns_list(client, admin_headers):
    create(client, admin_headers)
    create(client, admin_headers)
    r = client.get("/api/orders/track", params={"phoneNumber": NEW_ORDER["phoneNumber"]})
    assert r.status_code == 200
    assert len(r.json()) == 2


def test_track_query_tries_order_number_then_phone(client, admin_headers):
    create(client, admin_headers)

    r = client.get("/api/orders/track", params={"query": "ORD-0001"})
    assert r.json()["orderNumber"] == "ORD-0001"

    r = client.get("/api/orders/track", params={"query": NEW_ORDER["phoneNumber"]})
    assert isinstance(r.json(), list)

    r = client.get("/api/orders/track", params={"query": "nothing"})
    assert r.status_code == 404


def test_track_not_found_and_missing_params(client):
    r = client.get("/api/orders/track", params={"orderNumber": "ORD-9999"})
    assert r.status_code == 404

    r = client.get("/api/orders/track", params={"phoneNumber": "000"})
    assert r.status_code == 404
    assert r.json()["message"] == "لم يتم العثور على طلبيات بهذا الرقم"

    r = client.get("/api/orders/track")
    assert r.status_code == 400
    assert r.json()["message"] == "يرجى إدخال رقم الطلبية أو رقم الهاتف"


# --- Realtime ---

def test_mutations_are_broadcast(client, admin_headers):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "connected"

        order = create(client, admin_headers)
        event = ws.receive_json()
        assert event["type"] == "order_create"
        assert event["order"]["orderNumber"] == "ORD-0001"

        client.put(f"/api/orders/{order['id']}", json={"orderStatus": PAID}, headers=admin_headers)
        event = ws.receive_json()
        assert event["type"] == "order_update"
        assert event["order"]["orderStatus"] == PAID
        assert PAID in event["order"]["statusTimestamps"]

        client.delete(f"/api/orders/{order['id']}", headers=admin_headers)
        assert ws.receive_json() == {"type": "order_delete", "orderId": order["id"]}


def test_broadcast_failure_does_not_fail_request(client, admin_headers, monkeypatch):
    async def boom(message):
        raise RuntimeError("fan-out down")

    monkeypatch.setattr(app.state.broadcaster, "broadcast", boom)

    r = client.post("/api/orders", json=NEW_ORDER, headers=admin_headers)
    assert r.status_code == 201


def test_client_frames_do_not_drop_the_connection(client, admin_headers):
    with client.websocket_connect("/ws") as ws:
        assert ws.receive_json()["type"] == "connected"

        ws.send_bytes(b"ping")
        ws.send_text("hello")

        create(client, admin_headers)
        event = ws.receive_json()
        assert event["type"] == "order_create"


def test_mutations_are_not_run_on_the_event_loop(client, admin_headers, monkeypatch):
    seen = []
    real_create = storage.create_order

    def recording_create(db, data):
        try:
            asyncio.get_running_loop()
            seen.append("loop")
        except RuntimeError:
            seen.append("worker")
        return real_create(db, data)

    monkeypatch.setattr(storage, "create_order", recording_create)
    create(client, admin_headers)
    assert seen == ["worker"]
