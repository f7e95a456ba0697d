import base64
from datetime import datetime, timezone

import pytest

from backend import models, mpesa
from backend.errors import PaymentGatewayError


@pytest.fixture
def stk_calls(monkeypatch):
    calls = []

    def fake_stk_push(phone, amount, account_ref, description):
        calls.append({"phone": phone, "amount": amount, "account_ref": account_ref})
        return {
            "MerchantRequestID": "29115-34620561-1",
            "CheckoutRequestID": f"ws_CO_{len(calls)}",
            "ResponseCode": "0",
            "ResponseDescription": "Success. Request accepted for processing",
        }

    monkeypatch.setattr(mpesa, "stk_push", fake_stk_push)
    return calls


@pytest.fixture
def order(make_product, customer, place_order):
    return place_order(customer, [(make_product(price=100, count_in_stock=5), 2)]).json()


def callback_body(checkout_request_id, result_code=0, receipt="QK12ABC345"):
    callback = {
        "MerchantRequestID": "29115-34620561-1",
        "CheckoutRequestID": checkout_request_id,
        "ResultCode": result_code,
        "ResultDesc": "The service request is processed successfully." if result_code == 0 else "Request cancelled by user",
    }
    if result_code == 0:
        callback["CallbackMetadata"] = {"Item": [
            {"Name": "Amount", "Value": 200},
            {"Name": "MpesaReceiptNumber", "Value": receipt},
            {"Name": "Balance"},
            {"Name": "TransactionDate", "Value": 20250101120000},
            {"Name": "PhoneNumber", "Value": 254712345678},
        ]}
    return {"Body": {"stkCallback": callback}}


def initiate(client, order, user, auth_headers, phone="254712345678"):
    return client.post(
        f"/api/payments/mpesa/stk/{order['id']}",
        headers=auth_headers(user),
        json={"phone": phone},
    )


def test_initiate_creates_pending_payment(client, db, order, customer, auth_headers, stk_calls):
    response = initiate(client, order, customer, auth_headers)

    assert response.status_code == 201
    body = response.json()
    assert body["checkoutRequestID"] == "ws_CO_1"
    assert stk_calls == [{"phone": "254712345678", "amount": 200, "account_ref": f"ORDER-{order['id'][-6:]}"}]

    payment = db.get(models.Payment, body["paymentId"])
    assert payment.status == "pending"
    assert payment.amount == 200
    assert payment.user_id == customer.id
    assert payment.merchant_request_id == "29115-34620561-1"


def test_initiate_rejects_bad_phone(client, db, order, customer, auth_headers, stk_calls):
    response = initiate(client, order, customer, auth_headers, phone="0712345678")

    assert response.status_code == 400
    assert stk_calls == []
    assert db.query(models.Payment).count() == 0


def test_initiate_on_paid_order_is_rejected(client, db, order, customer, auth_headers, stk_calls):
    db.get(models.Order, order["id"]).is_paid = True
    db.commit()

    response = initiate(client, order, customer, auth_headers)

    assert response.status_code == 400
    assert response.json()["message"] == "Order already paid"
    assert stk_calls == []
    assert db.query(models.Payment).count() == 0


def test_only_owner_or_admin_can_initiate(client, order, make_user, admin, pharmacist, auth_headers, stk_calls):
    assert initiate(client, order, make_user(), auth_headers).status_code == 403
    assert initiate(client, order, pharmacist, auth_headers).status_code == 403
    assert initiate(client, order, admin, auth_headers).status_code == 201


def test_gateway_failure_surfaces_as_502(client, db, order, customer, auth_headers, monkeypatch):
    def failing_stk_push(**kwargs):
        raise PaymentGatewayError("M-Pesa error: Invalid Access Token")

    monkeypatch.setattr(mpesa, "stk_push", failing_stk_push)

    response = initiate(client, order, customer, auth_headers)

    assert response.status_code == 502
    assert response.json()["message"] == "M-Pesa error: Invalid Access Token"
    assert db.query(models.Payment).count() == 0


def test_callback_for_unknown_checkout_is_a_no_op(client, db, order, customer, auth_headers, stk_calls):
    payment_id = initiate(client, order, customer, auth_headers).json()["paymentId"]

    response = client.post("/api/payments/mpesa/callback", json=callback_body("ws_CO_unknown"))

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    db.expire_all()
    assert db.query(models.Payment).count() == 1
    assert db.get(models.Payment, payment_id).status == "pending"
    assert db.get(models.Order, order["id"]).is_paid is False


def test_callback_without_stk_payload_is_acknowledged(client, db):
    response = client.post("/api/payments/mpesa/callback", json={"unexpected": "shape"})

    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert db.query(models.Payment).count() == 0


def test_successful_callback_marks_payment_and_order(client, db, order, customer, auth_headers, stk_calls):
    checkout_id = initiate(client, order, customer, auth_headers).json()["checkoutRequestID"]

    response = client.post("/api/payments/mpesa/callback", json=callback_body(checkout_id))

    assert response.json() == {"ok": True}
    db.expire_all()
    payment = db.query(models.Payment).one()
    assert payment.status == "success"
    assert payment.result_code == "0"
    assert payment.receipt == "QK12ABC345"
    assert payment.transaction_date == "20250101120000"
    stored_order = db.get(models.Order, order["id"])
    assert stored_order.is_paid is True
    assert stored_order.paid_at is not None
    assert stored_order.payment_method == "mpesa"
    assert stored_order.payment_result["id"] == "QK12ABC345"


def test_failed_callback_leaves_order_unpaid(client, db, order, customer, auth_headers, stk_calls):
    checkout_id = initiate(client, order, customer, auth_headers).json()["checkoutRequestID"]

    client.post("/api/payments/mpesa/callback", json=callback_body(checkout_id, result_code=1032))

    db.expire_all()
    payment = db.query(models.Payment).one()
    assert payment.status == "failed"
    assert payment.result_code == "1032"
    assert db.get(models.Order, order["id"]).is_paid is False


def test_duplicate_callback_does_not_reprocess_success(client, db, order, customer, auth_headers, stk_calls):
    checkout_id = initiate(client, order, customer, auth_headers).json()["checkoutRequestID"]
    client.post("/api/payments/mpesa/callback", json=callback_body(checkout_id, receipt="FIRST"))

    client.post("/api/payments/mpesa/callback", json=callback_body(checkout_id, result_code=1))

    db.expire_all()
    payment = db.query(models.Payment).one()
    assert payment.status == "success"
    assert payment.receipt == "FIRST"


def test_callback_token_is_enforced_when_configured(client, db, order, customer, auth_headers, stk_calls, monkeypatch):
    checkout_id = initiate(client, order, customer, auth_headers).json()["checkoutRequestID"]
    monkeypatch.setattr(mpesa, "MPESA_CALLBACK_TOKEN", "s3cret")

    refused = client.post("/api/payments/mpesa/callback?token=wrong", json=callback_body(checkout_id))
    assert refused.status_code == 403
    db.expire_all()
    assert db.query(models.Payment).one().status == "pending"

    accepted = client.post("/api/payments/mpesa/callback?token=s3cret", json=callback_body(checkout_id))
    assert accepted.status_code == 200
    db.expire_all()
    assert db.query(models.Payment).one().status == "success"


def test_staff_payment_listing(client, order, customer, pharmacist, auth_headers, stk_calls):
    initiate(client, order, customer, auth_headers, phone="254700000001")
    initiate(client, order, customer, auth_headers, phone="254711111111")

    everything = client.get("/api/payments", headers=auth_headers(pharmacist)).json()
    by_phone = client.get("/api/payments?q=0001", headers=auth_headers(pharmacist)).json()
    pending = client.get("/api/payments?status=pending", headers=auth_headers(pharmacist)).json()

    assert len(everything) == 2
    assert [p["phone"] for p in by_phone] == ["254700000001"]
    assert by_phone[0]["order"]["totalPrice"] == 200
    assert by_phone[0]["mpesa"]["checkoutRequestID"].startswith("ws_CO_")
    assert len(pending) == 2
    assert client.get("/api/payments", headers=auth_headers(customer)).status_code == 403


def test_callback_metadata_flattens_items():
    metadata = mpesa.callback_metadata(callback_body("x")["Body"]["stkCallback"])

    assert metadata["MpesaReceiptNumber"] == "QK12ABC345"
    assert metadata["Balance"] is None
    assert mpesa.callback_metadata({}) == {}


def test_password_and_timestamp(monkeypatch):
    monkeypatch.setattr(mpesa, "MPESA_SHORTCODE", "174379")
    monkeypatch.setattr(mpesa, "MPESA_PASSKEY", "passkey")

    password, timestamp = mpesa.password_and_timestamp(datetime(2025, 1, 2, 3, 4, 5, tzinfo=timezone.utc))

    assert timestamp == "20250102030405"
    assert base64.b64decode(password).decode() == "174379passkey20250102030405"


def test_stk_push_runs_off_event_loop(client, order, customer, auth_headers, monkeypatch, on_event_loop):
    seen = []

    def fake_stk_push(phone, amount, account_ref, description):
        seen.append(on_event_loop())
        return {"MerchantRequestID": "m-1", "CheckoutRequestID": "ws_CO_loop", "ResponseCode": "0"}

    monkeypatch.setattr(mpesa, "stk_push", fake_stk_push)

    assert initiate(client, order, customer, auth_headers).status_code == 201
    assert seen == [False]
