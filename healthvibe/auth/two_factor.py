"""
Two-factor authentication (TOTP, RFC 6238).

States per user: disabled -> provisioned/enabled -> disabled. Provisioning
stores a fresh shared secret together with the enabled flag; disabling
clears both in one store write. Re-enabling always generates a new secret.

Works with Google Authenticator, Authy, Microsoft Authenticator and any
other RFC 6238 app.
"""

from __future__ import annotations

import base64
import io
import logging
from datetime import datetime
from typing import TYPE_CHECKING

import pyotp
import qrcode
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from healthvibe.auth.errors import TwoFactorAlreadyEnabled, TwoFactorNotEnabled
from healthvibe.auth.models import User

if TYPE_CHECKING:
    from healthvibe.storage.base import UserStore

logger = logging.getLogger(__name__)


class TwoFactorSetup(BaseModel):
    """What a user needs to add the account to an authenticator app."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    secret: str
    provisioning_uri: str
    qr_code: str  # PNG data URL of provisioning_uri


class TwoFactorService:
    """Provision, verify and disable TOTP for users."""

    def __init__(
        self,
        store: UserStore,
        issuer: str = "HealthVibe",
        interval: int = 30,
        valid_window: int = 1,
    ):
        self.store = store
        self.issuer = issuer
        self.interval = interval
        self.valid_window = valid_window

    def _totp(self, secret: str) -> pyotp.TOTP:
        return pyotp.TOTP(secret, interval=self.interval, issuer=self.issuer)

    async def provision(self, user: User) -> TwoFactorSetup:
        """
        Generate and store a new shared secret.

        Raises:
            TwoFactorAlreadyEnabled: the user already has 2FA on
        """
        if user.two_factor_enabled:
            raise TwoFactorAlreadyEnabled()

        secret = pyotp.random_base32()
        await self.store.update(user.id, {
            "two_factor_secret": secret,
            "two_factor_enabled": True,
        })

        uri = self._totp(secret).provisioning_uri(name=user.email, issuer_name=self.issuer)
        logger.info(f"Two-factor enabled for user {user.id}")

        return TwoFactorSetup(
            secret=secret,
            provisioning_uri=uri,
            qr_code=render_qr_data_url(uri),
        )

    def verify_code(self, user: User, code: str | None, for_time: datetime | None = None) -> bool:
        """
        Check a one-time code against the user's secret.

        Codes from `valid_window` steps either side of the current one are
        accepted to tolerate clock drift.
        """
        if not user.two_factor_secret or not code:
            return False
        totp = self._totp(user.two_factor_secret)
        code = str(code).replace(" ", "").strip()
        if code.isdigit():
            # Leading zeros are lost when the code was sent as a number
            code = code.zfill(totp.digits)
        return totp.verify(
            code,
            for_time=for_time,
            valid_window=self.valid_window,
        )

    async def disable(self, user: User) -> None:
        """
        Turn 2FA off, clearing the flag and secret together.

        Raises:
            TwoFactorNotEnabled: nothing to disable
        """
        if not user.two_factor_enabled:
            raise TwoFactorNotEnabled()

        await self.store.update(user.id, {
            "two_factor_secret": None,
            "two_factor_enabled": False,
        })
        logger.info(f"Two-factor disabled for user {user.id}")


def render_qr_data_url(data: str) -> str:
    """Render `data` as a QR code PNG and return it as a data URL."""
    image = qrcode.make(data)
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
