"""
HTTP tests for the auth routes, the access gate and the app wiring.
"""

import asyncio
import re
import threading

import httpx
import pyotp
import pytest

from healthvibe.api.app import create_app
from healthvibe.auth.passwords import PasswordHasher
from healthvibe.auth.roles import Role


REGISTER_BODY = {
    "firstName": "Jo",
    "lastName": "Doe",
    "email": "jo@x.io",
    "phone": "+15551234567",
    "password": "secret1",
}

LOGIN_BODY = {"emailOrPhone": "jo@x.io", "password": "secret1"}


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


async def _register(client, **overrides):
    response = await client.post("/register", json={**REGISTER_BODY, **overrides})
    assert response.status_code == 201, response.text
    return response.json()


# =============================================================================
# Register
# =============================================================================


class TestRegister:
    @pytest.mark.asyncio
    async def test_returns_user_and_token(self, client):
        body = await _register(client)

        assert body["user"]["email"] == "jo@x.io"
        assert body["user"]["role"] == "user"
        assert body["user"]["twoFactorEnabled"] is False
        assert "passwordHash" not in body["user"]
        assert body["token"]

        me = await client.get("/me", headers=_bearer(body["token"]))
        assert me.status_code == 200

    @pytest.mark.asyncio
    async def test_field_errors(self, client):
        response = await client.post("/register", json={"email": "nope", "password": "abc"})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["detail"]}
        assert {"firstName", "lastName", "email", "phone", "password"} <= fields

    @pytest.mark.asyncio
    async def test_duplicate(self, client):
        await _register(client)

        response = await client.post("/register", json={**REGISTER_BODY, "email": "JO@X.IO", "phone": "+15550000000"})

        assert response.status_code == 400
        assert "already exists" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_non_json_body(self, client):
        response = await client.post(
            "/register",
            content="firstName=Jo",
            headers={"Content-Type": "text/plain"},
        )

        assert response.status_code == 400


# =============================================================================
# Login / Logout / Me
# =============================================================================


class TestSessionLifecycle:
    @pytest.mark.asyncio
    async def test_register_login_me_logout(self, client):
        await _register(client)

        login = await client.post("/login", json=LOGIN_BODY)
        assert login.status_code == 200
        assert login.json()["user"]["email"] == "jo@x.io"
        token = login.cookies["authToken"]

        me = await client.get("/me")
        assert me.status_code == 200
        assert me.json()["firstName"] == "Jo"

        logout = await client.post("/logout")
        assert logout.status_code == 200

        again = await client.get("/me", headers=_bearer(token))
        assert again.status_code == 401
        assert again.json()["detail"] == "Please authenticate."

        old_cookie = await client.get("/me", headers={"Cookie": f"authToken={token}"})
        assert old_cookie.status_code == 401
        assert old_cookie.json()["detail"] == "Please authenticate."

    @pytest.mark.asyncio
    async def test_cookie_flags(self, client):
        await _register(client)

        login = await client.post("/login", json=LOGIN_BODY)

        cookie = login.headers["set-cookie"].lower()
        assert cookie.startswith("authtoken=")
        assert "httponly" in cookie
        assert "samesite=strict" in cookie
        assert "max-age=604800" in cookie

    @pytest.mark.asyncio
    async def test_login_by_phone(self, client):
        await _register(client)

        login = await client.post("/login", json={"emailOrPhone": "+1 555 123 4567", "password": "secret1"})

        assert login.status_code == 200

    @pytest.mark.asyncio
    async def test_already_logged_in(self, client, store):
        await _register(client)
        await client.post("/login", json=LOGIN_BODY)
        before = (await store.get_by_email("jo@x.io")).session_ids

        second = await client.post("/login", json=LOGIN_BODY)

        assert second.status_code == 200
        assert second.json() == {"message": "User is already logged in."}
        assert (await store.get_by_email("jo@x.io")).session_ids == before

    @pytest.mark.asyncio
    async def test_bad_credentials(self, client):
        await _register(client)

        wrong = await client.post("/login", json={**LOGIN_BODY, "password": "nope"})
        unknown = await client.post("/login", json={**LOGIN_BODY, "emailOrPhone": "ghost@x.io"})

        assert wrong.status_code == 400
        assert wrong.json() == unknown.json()

    @pytest.mark.asyncio
    async def test_missing_fields(self, client):
        response = await client.post("/login", json={})

        assert response.status_code == 400
        fields = {e["field"] for e in response.json()["detail"]}
        assert fields == {"emailOrPhone", "password"}

    @pytest.mark.asyncio
    async def test_logout_leaves_other_sessions(self, client):
        registered = await _register(client)

        await client.post("/login", json=LOGIN_BODY)
        await client.post("/logout")

        assert (await client.get("/me", headers=_bearer(registered["token"]))).status_code == 200

    @pytest.mark.asyncio
    async def test_rate_limit(self, client):
        await _register(client)

        for _ in range(5):
            response = await client.post("/login", json={**LOGIN_BODY, "password": "nope"})
            assert response.status_code == 400

        blocked = await client.post("/login", json=LOGIN_BODY)

        assert blocked.status_code == 429
        assert blocked.json()["detail"] == (
            "Too many login attempts from this IP, please try again after 15 minutes"
        )


# =============================================================================
# Access Gate
# =============================================================================


class TestGate:
    @pytest.mark.asyncio
    async def test_no_token(self, client):
        response = await client.get("/me")

        assert response.status_code == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("header", ["Bearer garbage", "Token abc", "Bearer"])
    async def test_bad_header(self, client, header):
        response = await client.get("/me", headers={"Authorization": header})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_roles(self, client, store):
        body = await _register(client)
        headers = _bearer(body["token"])

        assert (await client.get("/admin-dashboard", headers=headers)).status_code == 403
        assert (await client.get("/trainer-dashboard", headers=headers)).status_code == 403

        await store.update(body["user"]["id"], {"role": Role.ADMIN})

        admin = await client.get("/admin-dashboard", headers=headers)
        assert admin.status_code == 200
        assert admin.json() == {"message": "Welcome to Admin Dashboard"}
        assert (await client.get("/trainer-dashboard", headers=headers)).status_code == 403

    @pytest.mark.asyncio
    async def test_unauthenticated_before_forbidden(self, client):
        response = await client.get("/admin-dashboard")

        assert response.status_code == 401


# =============================================================================
# Two-Factor
# =============================================================================


class TestTwoFactorRoutes:
    @pytest.mark.asyncio
    async def test_enable_then_login_needs_code(self, client):
        body = await _register(client)
        headers = _bearer(body["token"])

        enabled = await client.post("/enable-2fa", headers=headers)
        assert enabled.status_code == 200
        setup = enabled.json()
        assert setup["qrCode"].startswith("data:image/png;base64,")
        assert setup["provisioningUri"].startswith("otpauth://")

        assert (await client.post("/enable-2fa", headers=headers)).status_code == 400

        no_code = await client.post("/login", json=LOGIN_BODY)
        assert no_code.status_code == 400

        bad_code = await client.post("/login", json={**LOGIN_BODY, "twoFactorToken": "000000"})
        code = pyotp.TOTP(setup["secret"]).now()
        if code != "000000":
            assert bad_code.status_code == 401

        good = await client.post("/login", json={**LOGIN_BODY, "twoFactorToken": code})
        assert good.status_code == 200

    @pytest.mark.asyncio
    async def test_numeric_code(self, client):
        body = await _register(client)
        setup = (await client.post("/enable-2fa", headers=_bearer(body["token"]))).json()

        code = int(pyotp.TOTP(setup["secret"]).now())
        login = await client.post("/login", json={**LOGIN_BODY, "twoFactorToken": code})

        assert login.status_code == 200
        assert login.json()["user"]["email"] == "jo@x.io"

    @pytest.mark.asyncio
    async def test_disable(self, client):
        body = await _register(client)
        headers = _bearer(body["token"])

        assert (await client.post("/disable-2fa", headers=headers)).status_code == 400

        await client.post("/enable-2fa", headers=headers)
        assert (await client.post("/disable-2fa", headers=headers)).status_code == 200

        me = await client.get("/me", headers=headers)
        assert me.json()["twoFactorEnabled"] is False


# =============================================================================
# Password Reset
# =============================================================================


class TestPasswordResetRoutes:
    @pytest.mark.asyncio
    async def test_forgot_and_reset(self, client, mailer):
        await _register(client)

        forgot = await client.post("/forgot-password", json={"email": "jo@x.io"})
        assert forgot.status_code == 200

        token = re.search(r"/reset-password/([0-9a-f]{64})", mailer.sent[0]["text"]).group(1)

        reset = await client.post(f"/reset-password/{token}", json={"password": "newpass1"})
        assert reset.status_code == 200

        old = await client.post("/login", json=LOGIN_BODY)
        assert old.status_code == 400
        new = await client.post("/login", json={**LOGIN_BODY, "password": "newpass1"})
        assert new.status_code == 200

        reused = await client.post(f"/reset-password/{token}", json={"password": "newpass2"})
        assert reused.status_code == 400
        assert reused.json()["detail"] == "Invalid or expired token."

    @pytest.mark.asyncio
    async def test_unknown_email_not_disclosed(self, client, mailer):
        await _register(client)

        known = await client.post("/forgot-password", json={"email": "jo@x.io"})
        unknown = await client.post("/forgot-password", json={"email": "ghost@x.io"})

        assert unknown.status_code == 200
        assert unknown.json() == known.json()
        assert len(mailer.sent) == 1

    @pytest.mark.asyncio
    async def test_unknown_email_disclosed_when_configured(self, settings, store, mailer):
        app = create_app(
            settings=settings.model_copy(update={"disclose_unknown_accounts": True}),
            store=store,
            mailer=mailer,
        )
        client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver")

        async with client:
            response = await client.post("/forgot-password", json={"email": "ghost@x.io"})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_short_password(self, client):
        response = await client.post("/reset-password/whatever", json={"password": "abc"})

        assert response.status_code == 400
        assert response.json()["detail"][0]["field"] == "password"


# =============================================================================
# App Wiring
# =============================================================================


class TestApp:
    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_security_headers(self, client):
        response = await client.get("/health")

        assert response.headers["x-content-type-options"] == "nosniff"
        assert response.headers["x-frame-options"] == "SAMEORIGIN"
        assert response.headers["referrer-policy"] == "no-referrer"
        assert "strict-transport-security" in response.headers

    @pytest.mark.asyncio
    async def test_health_answers_while_login_hashes(self, app, client):
        await _register(client)
        hasher = GatedHasher()
        app.state.auth.credentials.hasher = hasher

        login = asyncio.create_task(client.post("/login", json=LOGIN_BODY))
        assert await asyncio.to_thread(hasher.entered.wait, 5)

        health = await client.get("/health")

        assert health.status_code == 200
        assert not login.done()

        hasher.release.set()
        assert (await login).status_code == 200


class GatedHasher(PasswordHasher):
    """Hasher whose verify holds until the test releases it."""

    def __init__(self):
        super().__init__(iterations=1_000)
        self.entered = threading.Event()
        self.release = threading.Event()

    def verify(self, password: str, password_hash: str) -> bool:
        self.entered.set()
        self.release.wait(5)
        return super().verify(password, password_hash)
