"""
Tests for authentication and profile endpoints
"""
from datetime import timedelta

from smartlife.core import security
from smartlife.core.config import settings

PASSWORD = "secret123"


def test_register_returns_user_and_tokens(client):
    """Registration creates the user, logs in and sets cookies"""
    response = client.post(
        "/api/auth/register",
        json={"email": "  New@Example.com ", "password": PASSWORD, "name": "New User"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "new@example.com"
    assert user["name"] == "New User"
    assert user["loginCount"] == 1
    assert "password" not in user
    assert body["data"]["token"]
    assert body["data"]["refreshToken"]
    assert "token" in response.cookies
    assert "refresh_token" in response.cookies


def test_register_duplicate_email(client, create_user):
    """A second account with the same email is rejected"""
    create_user(email="dup@example.com")

    response = client.post(
        "/api/auth/register",
        json={"email": "DUP@example.com", "password": PASSWORD, "name": "Again"},
    )

    assert response.status_code == 400
    assert response.json()["code"] == "USER_EXISTS"


def test_register_validation_errors(client):
    """Short password and invalid email are reported per field"""
    response = client.post(
        "/api/auth/register",
        json={"email": "not-an-email", "password": "123", "name": "Bob"},
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    fields = {d["field"] for d in body["details"]}
    assert {"email", "password"} <= fields


def test_login_updates_statistics(client, create_user):
    """Login succeeds with the right password and counts logins"""
    create_user(email="login@example.com")

    response = client.post("/api/auth/login", json={"email": "login@example.com", "password": PASSWORD})

    assert response.status_code == 200
    user = response.json()["data"]["user"]
    assert user["loginCount"] == 2
    assert user["lastLogin"] is not None


def test_login_wrong_password(client, create_user):
    """Wrong password and unknown email give the same error"""
    create_user(email="login@example.com")

    wrong = client.post("/api/auth/login", json={"email": "login@example.com", "password": "nope-nope"})
    unknown = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    assert wrong.status_code == 401
    assert unknown.status_code == 401
    assert wrong.json()["code"] == unknown.json()["code"] == "INVALID_CREDENTIALS"


def test_me_requires_token(client):
    """No header and no cookie means NO_TOKEN"""
    client.cookies.clear()
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.json()["code"] == "NO_TOKEN"


def test_me_with_invalid_token(client):
    """A garbage bearer token is rejected"""
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not.a.jwt"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN"


def test_me_with_expired_token(client, auth_headers):
    """Expired access tokens get their own code"""
    me = client.get("/api/auth/me", headers=auth_headers).json()["data"]["user"]
    expired = security.create_access_token(subject=me["id"], expires_delta=timedelta(seconds=-10))

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {expired}"})

    assert response.status_code == 401
    assert response.json()["code"] == "TOKEN_EXPIRED"


def test_me_from_cookie(client, auth_headers):
    """The token cookie set at registration is enough to authenticate"""
    response = client.get("/api/auth/me")

    assert response.status_code == 200
    assert response.json()["data"]["user"]["email"] == "user@example.com"


def test_refresh_token(client):
    """A refresh token yields a new access token; an access token does not"""
    data = client.post(
        "/api/auth/register",
        json={"email": "refresh@example.com", "password": PASSWORD, "name": "Refresher"},
    ).json()["data"]

    ok = client.post("/api/auth/refresh", json={"refreshToken": data["refreshToken"]})
    wrong_type = client.post("/api/auth/refresh", json={"refreshToken": data["token"]})

    assert ok.status_code == 200
    new_token = ok.json()["data"]["token"]
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {new_token}"}).status_code == 200
    assert wrong_type.status_code == 401
    assert wrong_type.json()["code"] == "INVALID_TOKEN_TYPE"


def test_refresh_token_used_as_access_token(client):
    """Refresh tokens can't be used as bearer tokens"""
    data = client.post(
        "/api/auth/register",
        json={"email": "refresh@example.com", "password": PASSWORD, "name": "Refresher"},
    ).json()["data"]

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['refreshToken']}"})

    assert response.status_code == 401
    assert response.json()["code"] == "INVALID_TOKEN_TYPE"


def test_logout_clears_cookies(client, auth_headers):
    """Logout expires both auth cookies"""
    response = client.post("/api/auth/logout")

    assert response.status_code == 200
    assert response.json()["success"] is True
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("token=") and "Max-Age=0" in c for c in cookies)
    assert any(c.startswith("refresh_token=") and "Max-Age=0" in c for c in cookies)


def test_update_password(client, auth_headers):
    """Password change needs the current password"""
    wrong = client.post(
        "/api/auth/update-password",
        json={"currentPassword": "wrong-one", "newPassword": "brand-new"},
        headers=auth_headers,
    )
    ok = client.post(
        "/api/auth/update-password",
        json={"currentPassword": PASSWORD, "newPassword": "brand-new"},
        headers=auth_headers,
    )

    assert wrong.status_code == 400
    assert wrong.json()["code"] == "INVALID_PASSWORD"
    assert ok.status_code == 200
    login = client.post("/api/auth/login", json={"email": "user@example.com", "password": "brand-new"})
    assert login.status_code == 200


def test_forgot_password_hides_unknown_email(client):
    """Unknown addresses get the same generic answer and no token"""
    response = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})

    assert response.status_code == 200
    assert response.json()["data"] == {}


def test_password_reset_flow(client, auth_headers, monkeypatch):
    """In development the reset token is returned and can be used once"""
    monkeypatch.setattr(settings, "ENVIRONMENT", "development")

    forgot = client.post("/api/auth/forgot-password", json={"email": "user@example.com"})
    token = forgot.json()["data"]["resetToken"]

    reset = client.post("/api/auth/reset-password", json={"token": token, "password": "fresh-pass"})
    reused = client.post("/api/auth/reset-password", json={"token": token, "password": "other-pass"})

    assert reset.status_code == 200
    assert reused.status_code == 400
    assert reused.json()["code"] == "INVALID_RESET_TOKEN"
    login = client.post("/api/auth/login", json={"email": "user@example.com", "password": "fresh-pass"})
    assert login.status_code == 200


def test_reset_password_unknown_token(client):
    """Made-up reset tokens are rejected"""
    response = client.post("/api/auth/reset-password", json={"token": "made-up", "password": "whatever1"})

    assert response.status_code == 400
    assert response.json()["code"] == "INVALID_RESET_TOKEN"


def test_profile_update_merges_preferences(client, auth_headers):
    """PATCH /users/me changes the name and merges preference keys"""
    response = client.patch(
        "/api/users/me",
        json={"name": "Renamed", "preferences": {"theme": "dark"}},
        headers=auth_headers,
    )

    assert response.status_code == 200
    user = response.json()["data"]
    assert user["name"] == "Renamed"
    assert user["preferences"]["theme"] == "dark"
    assert user["preferences"]["language"] == "en"

    profile = client.get("/api/users/me", headers=auth_headers).json()["data"]
    assert profile["preferences"]["theme"] == "dark"


def test_profile_rejects_unknown_theme(client, auth_headers):
    """Preference values are validated"""
    response = client.patch("/api/users/me", json={"preferences": {"theme": "neon"}}, headers=auth_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
