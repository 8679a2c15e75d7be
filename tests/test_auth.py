"""Registration, session login and password reset."""
import pytest

from marketplace.auth.passwords import hash_password, verify_password
from marketplace.auth.service import reset_attempts_key, reset_code_key
from marketplace.common.config import settings

NEW_USER = {
    "username": "corner",
    "password": "hunter22",
    "email": "Owner@CornerDiscount.com",
    "firstName": "Pat",
    "lastName": "Quinn",
    "company": "Corner Discount",
}


def test_password_hash_roundtrip():
    stored = hash_password("s3cret!")
    assert stored != "s3cret!"
    assert verify_password("s3cret!", stored)
    assert not verify_password("wrong", stored)
    assert not verify_password("s3cret!", "not-a-hash")


@pytest.mark.asyncio
async def test_register_logs_the_user_in(app):
    client = app.test_client()

    resp = await client.post("/api/register", json=NEW_USER)

    assert resp.status_code == 201
    body = await resp.get_json()
    assert body["role"] == "buyer"
    assert body["is_approved"] is True
    assert "password" not in body
    me = await client.get("/api/user")
    assert (await me.get_json())["username"] == "corner"


@pytest.mark.asyncio
async def test_sellers_wait_for_approval(app):
    resp = await app.test_client().post("/api/register", json={**NEW_USER, "role": "seller"})

    body = await resp.get_json()
    assert body["is_seller"] is True
    assert body["is_approved"] is False


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "override",
    [{"email": "not-an-email"}, {"password": "123"}, {"role": "admin"}, {"firstName": ""}],
)
async def test_register_validation(app, override):
    resp = await app.test_client().post("/api/register", json={**NEW_USER, **override})

    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_duplicate_username_or_email(app):
    client = app.test_client()
    await client.post("/api/register", json=NEW_USER)

    same_name = await client.post("/api/register", json={**NEW_USER, "email": "other@example.com"})
    same_email = await client.post(
        "/api/register", json={**NEW_USER, "username": "other", "email": "owner@cornerdiscount.com"}
    )

    assert same_name.status_code == 400
    assert (await same_name.get_json())["message"] == "Username already exists"
    assert same_email.status_code == 400
    assert (await same_email.get_json())["message"] == "Email already exists"


@pytest.mark.asyncio
async def test_login_and_logout(app, make_user):
    user = await make_user("buyer")
    client = app.test_client()

    bad = await client.post("/api/login", json={"username": user.username, "password": "nope"})
    assert bad.status_code == 401

    ok = await client.post("/api/login", json={"username": user.username, "password": "secret123"})
    assert ok.status_code == 200
    assert (await client.get("/api/user")).status_code == 200

    await client.post("/api/logout")
    assert (await client.get("/api/user")).status_code == 401


@pytest.mark.asyncio
async def test_password_reset_flow(app, make_user, fake_redis, sent):
    user = await make_user("buyer", email="reset@example.com")
    client = app.test_client()

    resp = await client.post("/api/password-reset/request", json={"email": "RESET@example.com"})

    assert resp.status_code == 204
    key = reset_code_key("reset@example.com")
    code = fake_redis.store[key]
    assert fake_redis.ttls[key] == 900
    assert sent == [("password_reset", {"to": "reset@example.com", "code": code})]

    wrong = "000000" if code != "000000" else "111111"
    rejected = await client.post(
        "/api/password-reset/confirm", json={"email": user.email, "code": wrong, "password": "brand-new"}
    )
    assert rejected.status_code == 400

    confirmed = await client.post(
        "/api/password-reset/confirm", json={"email": user.email, "code": code, "password": "brand-new"}
    )
    assert confirmed.status_code == 204
    assert key not in fake_redis.store

    login = await client.post("/api/login", json={"username": user.username, "password": "brand-new"})
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_password_reset_unknown_email_is_silent(app, fake_redis, sent):
    resp = await app.test_client().post("/api/password-reset/request", json={"email": "ghost@example.com"})

    assert resp.status_code == 204
    assert fake_redis.store == {}
    assert sent == []


@pytest.mark.asyncio
async def test_password_reset_code_burns_after_repeated_wrong_guesses(app, make_user, fake_redis, sent):
    user = await make_user("buyer", email="guess@example.com")
    client = app.test_client()
    await client.post("/api/password-reset/request", json={"email": user.email})
    key = reset_code_key(user.email)
    code = fake_redis.store[key]
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(settings.RESET_CODE_MAX_ATTEMPTS):
        resp = await client.post(
            "/api/password-reset/confirm", json={"email": user.email, "code": wrong, "password": "brand-new"}
        )
        assert resp.status_code == 400

    assert key not in fake_redis.store
    assert reset_attempts_key(user.email) not in fake_redis.store
    late = await client.post(
        "/api/password-reset/confirm", json={"email": user.email, "code": code, "password": "brand-new"}
    )
    assert late.status_code == 400


@pytest.mark.asyncio
async def test_wrong_reset_guesses_are_counted_with_the_code_ttl(app, make_user, fake_redis, sent):
    user = await make_user("buyer", email="count@example.com")
    client = app.test_client()
    await client.post("/api/password-reset/request", json={"email": user.email})
    code = fake_redis.store[reset_code_key(user.email)]
    wrong = "000000" if code != "000000" else "111111"

    await client.post("/api/password-reset/confirm", json={"email": user.email, "code": wrong, "password": "brand-new"})
    await client.post("/api/password-reset/confirm", json={"email": user.email, "code": wrong, "password": "brand-new"})

    attempts_key = reset_attempts_key(user.email)
    assert fake_redis.store[attempts_key] == "2"
    assert fake_redis.ttls[attempts_key] == 900

    # a fresh code starts a fresh count
    await client.post("/api/password-reset/request", json={"email": user.email})
    assert attempts_key not in fake_redis.store
