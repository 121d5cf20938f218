"""API tests for auth and owner-scoped plans."""

from datetime import datetime, timedelta, timezone

from jose import jwt

from memberhub.core.config import settings
from memberhub.core.security import hash_password, token_user_id, verify_password


def test_register_login_me(client):
    r = client.post(
        "/api/auth/register",
        json={"email": "new@example.com", "username": "newbie", "password": "secret123", "first_name": "New"},
    )
    assert r.status_code == 201
    assert r.json()["user"]["username"] == "newbie"

    dup = client.post(
        "/api/auth/register",
        json={"email": "new@example.com", "username": "other", "password": "secret123"},
    )
    assert dup.status_code == 400

    bad = client.post("/api/auth/login", json={"email": "new@example.com", "password": "wrong-pass"})
    assert bad.status_code == 401

    token = client.post("/api/auth/login", json={"email": "new@example.com", "password": "secret123"}).json()["access_token"]
    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["user"]["email"] == "new@example.com"


def test_bad_token_is_rejected(client):
    r = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert r.status_code == 401
    assert r.json() == {"success": False, "message": "Invalid or expired token"}


def _token(**claims):
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_alg)


def test_only_access_tokens_authenticate(client, member):
    """Tokens without the access type, with a non-numeric subject, or expired are refused."""
    later = int((datetime.now(timezone.utc) + timedelta(minutes=5)).timestamp())
    earlier = int((datetime.now(timezone.utc) - timedelta(minutes=5)).timestamp())
    refused = [
        _token(sub=str(member.id), exp=later),
        _token(sub=str(member.id), type="refresh", exp=later),
        _token(sub="admin", type="access", exp=later),
        _token(sub=str(member.id), type="access", exp=earlier),
    ]
    for token in refused:
        r = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert r.status_code == 401

    good = _token(sub=str(member.id), type="access", exp=later)
    assert token_user_id(good) == member.id
    assert client.get("/api/auth/me", headers={"Authorization": f"Bearer {good}"}).status_code == 200


def test_long_passwords_keep_every_character():
    base = "x" * 80
    hashed = hash_password(base + "a")
    assert verify_password(base + "a", hashed)
    assert not verify_password(base + "b", hashed)
    assert not verify_password(base + "a", "")


def test_plan_crud(client, owner, auth_headers):
    headers = auth_headers(owner)
    r = client.post(
        "/api/plans",
        json={"name": "Gold", "fee": 49.99, "renewalInterval": "quarterly"},
        headers=headers,
    )
    assert r.status_code == 201
    plan = r.json()["data"]
    assert plan["fee"] == 49.99
    assert plan["createdBy"] == owner.id

    r = client.put(f"/api/plans/{plan['id']}", json={"fee": 59.99}, headers=headers)
    assert r.json()["data"]["fee"] == 59.99

    assert [p["name"] for p in client.get("/api/plans", headers=headers).json()["data"]] == ["Gold"]
    assert client.delete(f"/api/plans/{plan['id']}", headers=headers).status_code == 200


def test_plan_of_another_owner_is_forbidden(client, make_user, make_plan, auth_headers):
    plan = make_plan()
    r = client.get(f"/api/plans/{plan.id}", headers=auth_headers(make_user()))
    assert r.status_code == 403


def test_plan_cannot_link_foreign_coupon(client, make_user, make_coupon, auth_headers):
    coupon = make_coupon()
    r = client.post(
        "/api/plans",
        json={"name": "Mine", "fee": 10, "couponId": coupon.id},
        headers=auth_headers(make_user()),
    )
    assert r.status_code == 400


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"
