from datetime import timedelta

from backend import models


def test_summary_counts_orders_and_inventory(client, db, make_product, customer, admin, place_order, auth_headers):
    product = make_product(price=100, count_in_stock=50)
    rx_product = make_product(name="Rx", prescription_required=True, price=300, count_in_stock=2)
    make_product(name="Expiring", count_in_stock=40, expiry_date=models.utcnow() + timedelta(days=5))

    paid = place_order(customer, [(product, 2)]).json()
    rejected = place_order(customer, [(product, 1)]).json()
    place_order(customer, [(rx_product, 1)], paymentMethod="mpesa")

    headers = auth_headers(admin)
    client.put(f"/api/orders/{rejected['id']}/decision", headers=headers, json={"action": "reject"})
    db.get(models.Order, paid["id"]).is_paid = True
    db.commit()

    response = client.get("/api/reports/summary?days=7", headers=headers)

    assert response.status_code == 200
    summary = response.json()
    assert summary["totalOrders"] == 3
    assert summary["paidOrders"] == 1
    assert summary["statusCounts"]["pending"] == 2
    assert summary["statusCounts"]["rejected"] == 1
    assert summary["statusCounts"]["delivered"] == 0
    assert summary["revenue"] == 500
    assert summary["paidRevenue"] == 200
    assert summary["rxOrders"] == 1
    assert summary["rxWaitingUpload"] == 1
    assert summary["rxPendingReview"] == 0
    assert summary["paymentSplit"] == {"cod": 2, "mpesa": 1}
    assert sum(day["orders"] for day in summary["revenueByDay"]) == 2
    assert summary["lowStock"] == 1
    assert summary["expiringSoon"] == 1


def test_orders_csv_export(client, make_product, customer, pharmacist, place_order, auth_headers):
    order = place_order(customer, [(make_product(), 1)]).json()

    response = client.get("/api/reports/orders.csv", headers=auth_headers(pharmacist))

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("orderId,createdAt,customer")
    assert order["id"] in lines[1]
    assert "Jane Customer" in lines[1]


def test_reports_are_staff_only(client, customer, auth_headers):
    assert client.get("/api/reports/summary", headers=auth_headers(customer)).status_code == 403
    assert client.get("/api/reports/orders.csv", headers=auth_headers(customer)).status_code == 403
