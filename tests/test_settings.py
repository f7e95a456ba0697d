from backend import models


def test_first_read_creates_default_singleton(client, db, pharmacist, auth_headers):
    first = client.get("/api/settings", headers=auth_headers(pharmacist))
    second = client.get("/api/settings", headers=auth_headers(pharmacist))

    assert first.status_code == 200
    body = first.json()
    assert body["storeName"] == "Pharmacy Store"
    assert body["lowStockThreshold"] == 5
    assert body["expiringSoonDays"] == 30
    assert body["requireRxApprovalBeforeDispatch"] is True
    assert second.json() == body
    assert db.query(models.Settings).count() == 1


def test_update_is_partial_and_records_editor(client, db, admin, auth_headers):
    response = client.put("/api/settings", headers=auth_headers(admin), json={
        "storeName": "Afya Pharmacy",
        "deliveryFee": 150,
    })

    assert response.status_code == 200
    body = response.json()
    assert body["storeName"] == "Afya Pharmacy"
    assert body["deliveryFee"] == 150
    assert body["tagline"] == "Get Medicines With Ease"
    assert body["updatedBy"] == admin.id
    assert db.query(models.Settings).count() == 1


def test_update_validates_thresholds(client, admin, auth_headers):
    response = client.put("/api/settings", headers=auth_headers(admin), json={"lowStockThreshold": -1})

    assert response.status_code == 400


def test_customers_cannot_touch_settings(client, db, customer, auth_headers):
    assert client.get("/api/settings", headers=auth_headers(customer)).status_code == 403
    assert client.put("/api/settings", headers=auth_headers(customer), json={"storeName": "Mine"}).status_code == 403
    assert db.query(models.Settings).count() == 0
