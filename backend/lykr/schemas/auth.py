"""Auth form schemas and the server-action result type.

Form schemas report failures as message keys (``emailRequired``,
``passwordWeak`` …) keyed by the submitted field name. The first failing
constraint per field is reported. Keys are translated by the caller.
"""

import re
from collections.abc import Mapping
from datetime import datetime
from typing import Any, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic_core import PydanticCustomError

PASSWORD_STRENGTH = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)")
OTP_LENGTH = 6

T = TypeVar("T", bound=BaseModel)


def _fail(key: str):
    raise PydanticCustomError(key, key)


def _check_email(value: str, max_length: int | None = None) -> str:
    if not value:
        _fail("emailRequired")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        _fail("emailInvalid")
    if max_length is not None and len(value) > max_length:
        _fail("emailMaxLength")
    return value


def _check_new_password(value: str) -> str:
    if not value:
        _fail("passwordRequired")
    if len(value) < 8:
        _fail("passwordMinLength")
    if len(value) > 255:
        _fail("passwordMaxLength")
    if not PASSWORD_STRENGTH.match(value):
        _fail("passwordWeak")
    return value


def _check_confirmation(value: str, info: ValidationInfo) -> str:
    if not value:
        _fail("passwordRequired")
    # Only compared once the password itself passed
    password = info.data.get("password")
    if password is not None and value != password:
        _fail("passwordMismatch")
    return value


class _Form(BaseModel):
    # Missing fields fall back to "" and must still hit their *Required check
    model_config = ConfigDict(
        populate_by_name=True, validate_default=True, str_strip_whitespace=False
    )


# ── Login ────────────────────────────────────────────────────

class LoginForm(_Form):
    email: str = ""
    password: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if not v:
            _fail("passwordRequired")
        return v


# ── Register ─────────────────────────────────────────────────

class RegisterForm(_Form):
    name: str = ""
    email: str = ""
    password: str = ""
    confirm_password: str = Field(default="", alias="confirmPassword")

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        if not v:
            _fail("nameRequired")
        if len(v) < 2:
            _fail("nameMinLength")
        if len(v) > 120:
            _fail("nameMaxLength")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v, max_length=150)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _check_new_password(v)

    @field_validator("confirm_password")
    @classmethod
    def _confirm(cls, v: str, info: ValidationInfo) -> str:
        return _check_confirmation(v, info)


# ── Password recovery (reset link) ──────────────────────────

class ForgotPasswordForm(_Form):
    email: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)


class ResetPasswordForm(_Form):
    token: str = ""
    password: str = ""
    confirm_password: str = Field(default="", alias="confirmPassword")

    @field_validator("token")
    @classmethod
    def _token(cls, v: str) -> str:
        if not v:
            _fail("tokenRequired")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _check_new_password(v)

    @field_validator("confirm_password")
    @classmethod
    def _confirm(cls, v: str, info: ValidationInfo) -> str:
        return _check_confirmation(v, info)


# ── Password recovery (OTP) ─────────────────────────────────

class VerifyOtpForm(_Form):
    email: str = ""
    otp: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("otp")
    @classmethod
    def _otp(cls, v: str) -> str:
        if not v:
            _fail("otpRequired")
        if len(v) != OTP_LENGTH:
            _fail("otpLength")
        if not v.isdigit() or not v.isascii():
            _fail("otpInvalid")
        return v


class ResetPasswordByOtpForm(_Form):
    email: str = ""
    password: str = ""
    confirm_password: str = Field(default="", alias="confirmPassword")

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _check_email(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        return _check_new_password(v)

    @field_validator("confirm_password")
    @classmethod
    def _confirm(cls, v: str, info: ValidationInfo) -> str:
        return _check_confirmation(v, info)


def parse_form(schema: type[T], data: Mapping[str, Any]) -> tuple[T | None, dict[str, list[str]]]:
    """Validate raw form fields. Returns (model, {}) or (None, {field: [key]})."""
    cleaned = {k: "" if v is None else str(v) for k, v in data.items()}
    try:
        return schema.model_validate(cleaned), {}
    except ValidationError as exc:
        errors: dict[str, list[str]] = {}
        for err in exc.errors():
            field = str(err["loc"][0]) if err["loc"] else "form"
            errors.setdefault(field, []).append(err["msg"])
        return None, errors


# ── Action result ───────────────────────────────────────────

class ActionState(BaseModel):
    """Result of one form submission. Replaces the previous result in full."""
    success: bool
    message: str
    errors: dict[str, list[str]] | None = None
    # Echoed form values. Never contains password fields.
    values: dict[str, str] | None = None


# ── User profile ────────────────────────────────────────────

class UserOut(BaseModel):
    id: int
    name: str
    email: str
    has_password: bool
    created_at: datetime

    model_config = {"from_attributes": True}
