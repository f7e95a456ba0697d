from backend import models


def test_register_creates_customer_without_exposing_password(client, db):
    response = client.post("/api/auth/register", json={
        "name": "Wanjiru",
        "email": "Wanjiru@Mail.com",
        "password": "secret123",
        "role": "admin",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["email"] == "wanjiru@mail.com"
    assert body["user"]["role"] == "customer"
    assert "password" not in body["user"]

    stored = db.query(models.User).filter(models.User.email == "wanjiru@mail.com").one()
    assert stored.password != "secret123"


def test_register_rejects_duplicate_email_case_insensitively(client, make_user):
    make_user(email="taken@mail.com")

    response = client.post("/api/auth/register", json={
        "name": "Someone",
        "email": "TAKEN@mail.com",
        "password": "secret123",
    })

    assert response.status_code == 400
    assert response.json() == {"success": False, "message": "User already exists", "status": 400}


def test_register_validation_errors_use_400_envelope(client):
    response = client.post("/api/auth/register", json={"name": "A", "email": "bad", "password": "123"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["message"] == "Validation failed"
    fields = {error["field"] for error in body["errors"]}
    assert {"name", "email", "password"} <= fields


def test_login_returns_token_for_valid_credentials(client, make_user):
    make_user(email="login@mail.com", password="rightpass")

    response = client.post("/api/auth/login", json={"email": "LOGIN@mail.com", "password": "rightpass"})

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "login@mail.com"


def test_login_rejects_wrong_password(client, make_user):
    make_user(email="login@mail.com", password="rightpass")

    response = client.post("/api/auth/login", json={"email": "login@mail.com", "password": "wrongpass"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


def test_login_rejects_blocked_user(client, make_user):
    make_user(email="blocked@mail.com", password="rightpass", is_blocked=True)

    response = client.post("/api/auth/login", json={"email": "blocked@mail.com", "password": "rightpass"})

    assert response.status_code == 403


def test_me_requires_token(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["message"] == "Not authenticated"


def test_me_rejects_garbage_token(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})

    assert response.status_code == 401
    assert response.json()["message"] == "Invalid token"


def test_me_returns_current_user(client, customer, auth_headers):
    response = client.get("/api/auth/me", headers=auth_headers(customer))

    assert response.status_code == 200
    assert response.json()["id"] == customer.id
    assert response.json()["role"] == "customer"


def test_blocked_user_token_is_refused(client, make_user, auth_headers):
    user = make_user(is_blocked=True)

    response = client.get("/api/auth/me", headers=auth_headers(user))

    assert response.status_code == 403


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json() == {
        "success": False,
        "message": "Route /api/does-not-exist Not Found",
        "status": 404,
    }
