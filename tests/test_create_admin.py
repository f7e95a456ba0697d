from backend import create_admin, models


def test_seed_skipped_without_password(db, monkeypatch):
    monkeypatch.setattr(create_admin, "ADMIN_PASSWORD", "")

    assert create_admin.ensure_admin_exists(db) is None
    assert db.query(models.User).count() == 0


def test_seed_creates_admin_that_can_log_in(client, db, monkeypatch):
    monkeypatch.setattr(create_admin, "ADMIN_EMAIL", "owner@mail.com")
    monkeypatch.setattr(create_admin, "ADMIN_PASSWORD", "secret123")

    admin = create_admin.ensure_admin_exists(db)

    assert admin.role == "admin"
    assert create_admin.ensure_admin_exists(db) is None
    login = client.post("/api/auth/login", json={"email": "owner@mail.com", "password": "secret123"})
    assert login.status_code == 200
    assert login.json()["user"]["role"] == "admin"


def test_seed_promotes_existing_account(db, make_user, monkeypatch):
    user = make_user(email="owner@mail.com", is_blocked=True)
    monkeypatch.setattr(create_admin, "ADMIN_EMAIL", "owner@mail.com")
    monkeypatch.setattr(create_admin, "ADMIN_PASSWORD", "secret123")

    promoted = create_admin.ensure_admin_exists(db)

    assert promoted.id == user.id
    assert promoted.role == "admin"
    assert promoted.is_blocked is False
    assert db.query(models.User).count() == 1
