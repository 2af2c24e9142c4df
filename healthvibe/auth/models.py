"""
User record, token claims, and the request/response shapes built on them.

`User` is the stored record. It is the only place the password hash, the
two-factor secret, the reset token and the session list live; anything
returned to a client goes through `UserResponse`.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from healthvibe.auth.errors import ValidationFailed
from healthvibe.auth.roles import MembershipTier, Role


PHONE_SEPARATORS = re.compile(r"[\s\-().]")
PHONE_PATTERN = re.compile(r"^\+?\d{7,15}$")

NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    return PHONE_SEPARATORS.sub("", phone.strip())


# =============================================================================
# Stored Record
# =============================================================================


class Address(BaseModel):
    """Postal address (all parts optional)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    street: str | None = None
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class User(BaseModel):
    """User stored in the credential store."""

    id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    password_hash: str
    role: Role = Role.USER
    membership: MembershipTier = MembershipTier.BASIC
    address: Address | None = None

    two_factor_enabled: bool = False
    two_factor_secret: str | None = None

    reset_password_token: str | None = None
    reset_password_expires: datetime | None = None

    # jti of every session token issued and not yet revoked, oldest first
    session_ids: list[str] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def _check_paired_fields(self) -> User:
        if self.two_factor_enabled != (self.two_factor_secret is not None):
            raise ValueError("two_factor_secret must be set exactly when two_factor_enabled")
        if (self.reset_password_token is None) != (self.reset_password_expires is None):
            raise ValueError("reset token and expiry must be set together")
        return self


class UserResponse(BaseModel):
    """User data returned to client (no sensitive fields)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    role: Role
    membership: MembershipTier
    address: Address | None = None
    two_factor_enabled: bool
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            email=user.email,
            phone=user.phone,
            role=user.role,
            membership=user.membership,
            address=user.address,
            two_factor_enabled=user.two_factor_enabled,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


# =============================================================================
# Token Claims
# =============================================================================


class TokenClaims(BaseModel):
    """Session token payload."""

    sub: str  # user_id
    role: Role
    iat: datetime
    exp: datetime
    jti: str  # session identifier (for revocation)


# =============================================================================
# Registration Validation
# =============================================================================


class RegistrationData(BaseModel):
    """Profile fields of a registration, validated and normalized."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str
    last_name: str
    email: str
    phone: str

    @field_validator("first_name", "last_name")
    @classmethod
    def _check_name(cls, value: str, info) -> str:
        if not NAME_MIN_LENGTH <= len(value) <= NAME_MAX_LENGTH:
            label = "First name" if info.field_name == "first_name" else "Last name"
            raise ValueError(
                f"{label} must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters."
            )
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        try:
            validate_email(value, check_deliverability=False)
        except EmailNotValidError:
            raise ValueError("Invalid email format.")
        return normalize_email(value)

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        phone = normalize_phone(value)
        if not PHONE_PATTERN.match(phone):
            raise ValueError("Invalid phone number format.")
        return phone


def password_errors(password: str, min_length: int) -> list[dict[str, str]]:
    """Validation errors for a new password (empty list when acceptable)."""
    if len(password) < min_length:
        return [{
            "field": "password",
            "message": f"Password must be at least {min_length} characters long.",
        }]
    return []


def errors_from_pydantic(exc: ValidationError) -> list[dict[str, str]]:
    """Flatten a pydantic ValidationError into field/message pairs."""
    errors = []
    for err in exc.errors():
        field = to_camel(str(err["loc"][0])) if err["loc"] else "body"
        if err["type"] == "value_error":
            message = str(err["ctx"]["error"])
        elif err["type"] == "missing":
            message = "Field is required."
        else:
            message = err["msg"]
        errors.append({"field": field, "message": message})
    return errors


def validate_registration(
    data: dict[str, Any],
    password: str,
    password_min_length: int,
) -> RegistrationData:
    """
    Validate every registration field and report every violated rule.

    Raises:
        ValidationFailed: with one entry per violated rule
    """
    errors: list[dict[str, str]] = []
    profile = None
    try:
        profile = RegistrationData.model_validate(data)
    except ValidationError as e:
        errors.extend(errors_from_pydantic(e))

    errors.extend(password_errors(password, password_min_length))

    if errors:
        raise ValidationFailed(errors)
    return profile
