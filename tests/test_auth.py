from datetime import datetime, timedelta, timezone

from jose import jwt

from polly.config import settings
from polly.routers.auth import COOKIE_KEY, create_access_token


async def test_cookie_sign_in(client, alice):
    token = create_access_token({"sub": str(alice.id)})
    resp = await client.get("/users/me", headers={"Cookie": f"{COOKIE_KEY}={token}"})
    assert resp.status_code == 200
    assert resp.json()["full_name"] == "Alice Liddell"


async def test_expired_token_is_ignored(client, alice):
    token = jwt.encode(
        {"sub": str(alice.id), "exp": datetime.now(timezone.utc) - timedelta(minutes=1)},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )
    resp = await client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_token_for_missing_user(client):
    resp = await client.get("/users/me", headers={"Authorization": f"Bearer {create_access_token({'sub': '404'})}"})
    assert resp.status_code == 401


async def test_unknown_provider(client):
    resp = await client.get("/auth/login/myspace")
    assert resp.status_code == 400


async def test_logout_clears_cookie(client):
    resp = await client.get("/auth/logout")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/?success=Logged+out+successfully"
    assert f'{COOKIE_KEY}=""' in resp.headers["set-cookie"]


async def test_mock_login_sets_cookie_outside_production(client):
    resp = await client.get("/mock-login/7")
    assert resp.status_code == 303
    assert resp.headers["location"] == "/dashboard"
    assert resp.headers["set-cookie"].startswith(f"{COOKIE_KEY}=")
