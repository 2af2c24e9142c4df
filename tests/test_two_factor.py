"""
Tests for TOTP two-factor authentication and its effect on login.
"""

from datetime import timedelta

import pyotp
import pytest

from healthvibe.auth.errors import (
    InvalidTwoFactorCode,
    TwoFactorAlreadyEnabled,
    TwoFactorNotEnabled,
    TwoFactorRequired,
)
from healthvibe.core.utils import utc_now


async def _enabled_user(services, registration):
    user = await services.credentials.register(**registration)
    setup = await services.two_factor.provision(user)
    return await services.store.get(user.id), setup


class TestProvision:
    @pytest.mark.asyncio
    async def test_provision_enables_and_stores_secret(self, services, registration):
        user, setup = await _enabled_user(services, registration)

        assert user.two_factor_enabled
        assert user.two_factor_secret == setup.secret
        assert setup.provisioning_uri.startswith("otpauth://totp/")
        assert "issuer=HealthVibe" in setup.provisioning_uri
        assert setup.qr_code.startswith("data:image/png;base64,")

    @pytest.mark.asyncio
    async def test_provision_twice_fails(self, services, registration):
        user, _ = await _enabled_user(services, registration)

        with pytest.raises(TwoFactorAlreadyEnabled):
            await services.two_factor.provision(user)

    @pytest.mark.asyncio
    async def test_disable_clears_secret(self, services, registration):
        user, _ = await _enabled_user(services, registration)

        await services.two_factor.disable(user)

        current = await services.store.get(user.id)
        assert not current.two_factor_enabled
        assert current.two_factor_secret is None

    @pytest.mark.asyncio
    async def test_disable_when_off_fails(self, services, registration):
        user = await services.credentials.register(**registration)

        with pytest.raises(TwoFactorNotEnabled):
            await services.two_factor.disable(user)

    @pytest.mark.asyncio
    async def test_reenable_gets_new_secret(self, services, registration):
        user, first = await _enabled_user(services, registration)
        await services.two_factor.disable(user)

        second = await services.two_factor.provision(await services.store.get(user.id))

        assert second.secret != first.secret


class TestVerifyCode:
    @pytest.mark.asyncio
    async def test_drift_window(self, services, registration):
        user, setup = await _enabled_user(services, registration)
        totp = pyotp.TOTP(setup.secret)
        now = utc_now()

        assert services.two_factor.verify_code(user, totp.at(now), for_time=now)
        assert services.two_factor.verify_code(user, totp.at(now - timedelta(seconds=30)), for_time=now)
        assert not services.two_factor.verify_code(user, totp.at(now - timedelta(seconds=90)), for_time=now)
        assert not services.two_factor.verify_code(user, totp.at(now + timedelta(seconds=90)), for_time=now)

    @pytest.mark.asyncio
    async def test_no_secret_never_verifies(self, services, registration):
        user = await services.credentials.register(**registration)

        assert not services.two_factor.verify_code(user, "123456")


class TestLoginWithTwoFactor:
    @pytest.mark.asyncio
    async def test_code_required(self, services, registration):
        await _enabled_user(services, registration)

        with pytest.raises(TwoFactorRequired):
            await services.login("jo@x.io", "secret1")

    @pytest.mark.asyncio
    async def test_wrong_code(self, services, registration):
        _, setup = await _enabled_user(services, registration)
        stale = pyotp.TOTP(setup.secret).at(utc_now() - timedelta(minutes=5))

        with pytest.raises(InvalidTwoFactorCode):
            await services.login("jo@x.io", "secret1", stale)

    @pytest.mark.asyncio
    async def test_correct_code(self, services, registration):
        user, setup = await _enabled_user(services, registration)

        logged_in, token = await services.login("jo@x.io", "secret1", pyotp.TOTP(setup.secret).now())

        assert logged_in.id == user.id
        verified, _ = await services.tokens.verify(token)
        assert verified.id == user.id

    @pytest.mark.asyncio
    async def test_no_session_without_code(self, services, store, registration):
        user, _ = await _enabled_user(services, registration)

        with pytest.raises(TwoFactorRequired):
            await services.login("jo@x.io", "secret1")

        assert (await store.get(user.id)).session_ids == []

    @pytest.mark.asyncio
    async def test_code_without_leading_zeros(self, services, registration):
        user, setup = await _enabled_user(services, registration)
        now = utc_now()
        code = pyotp.TOTP(setup.secret).at(now)

        assert services.two_factor.verify_code(user, str(int(code)), for_time=now)
