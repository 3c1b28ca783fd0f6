import pytest

from app.models import User
from conftest import auth_headers, make_token


@pytest.mark.auth
def test_profile_requires_credentials(client):
    response = client.get("/api/user/profile")
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}


@pytest.mark.auth
@pytest.mark.parametrize(
    "header",
    [
        "Token abc",
        "Bearer ",
        "Bearer undefined",
        "Bearer not-a-jwt",
    ],
)
def test_profile_rejects_malformed_credentials(client, header):
    response = client.get("/api/user/profile", headers={"Authorization": header})
    assert response.status_code == 401


@pytest.mark.auth
def test_profile_rejects_bad_signature(client, make_user):
    user = make_user()
    token = make_token(user.id, user.email, secret="another-secret-that-is-long-enough-32b")
    response = client.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.auth
def test_profile_rejects_expired_token(client, make_user):
    user = make_user()
    token = make_token(user.id, user.email, expires_in=-60)
    response = client.get("/api/user/profile", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_profile_returns_caller(client, make_user):
    user = make_user(name="Ada Lovelace")
    make_user()

    response = client.get("/api/user/profile", headers=auth_headers(user))

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == user.id
    assert body["email"] == user.email
    assert body["name"] == "Ada Lovelace"
    assert body["avatar_url"] == user.avatar_url


def test_profile_for_unsynced_user_is_404(client):
    response = client.get("/api/user/profile", headers=auth_headers("user_never_synced", "x@example.com"))
    assert response.status_code == 404


def test_subscriptions_returns_only_active_rows_newest_first(client, make_user, make_purchase):
    user = make_user()
    other = make_user()
    older = make_purchase(user, dodo_session_id="sub_old")
    newer = make_purchase(user, dodo_session_id="sub_new")
    make_purchase(user, dodo_session_id="sub_cancelled", status="cancelled")
    make_purchase(user, dodo_session_id="cks_done", status="completed", plan_type="pro")
    make_purchase(other, dodo_session_id="sub_other")

    response = client.get("/api/user/subscriptions", headers=auth_headers(user))

    assert response.status_code == 200
    ids = [row["dodo_session_id"] for row in response.json()]
    assert ids == [newer.dodo_session_id, older.dodo_session_id]
    assert all(row["status"] == "active" for row in response.json())


def test_subscriptions_requires_credentials(client):
    assert client.get("/api/user/subscriptions").status_code == 401


def test_sync_creates_user_from_token(client, db):
    headers = auth_headers("user_abc", "New.User@Example.com")
    response = client.post("/api/user/sync", json={"name": "New User", "avatarUrl": "https://img/x.png"}, headers=headers)

    assert response.status_code == 200
    db.expire_all()
    user = db.query(User).filter(User.id == "user_abc").one()
    assert user.email == "new.user@example.com"
    assert user.name == "New User"
    assert user.avatar_url == "https://img/x.png"


def test_sync_updates_existing_user_without_body(client, db, make_user):
    user = make_user(name="Keep Me")
    response = client.post("/api/user/sync", headers=auth_headers(user.id, "changed@example.com"))

    assert response.status_code == 200
    db.expire_all()
    refreshed = db.get(User, user.id)
    assert refreshed.email == "changed@example.com"
    assert refreshed.name == "Keep Me"


def test_sync_requires_email_claim(client):
    response = client.post("/api/user/sync", headers=auth_headers("user_no_email"))
    assert response.status_code == 401
