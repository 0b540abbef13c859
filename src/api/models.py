"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation,
plus the conversions between them and the domain dataclasses.
"""

from typing import Any

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.domain.models import (
    AccountType,
    CompanyDetails,
    CompanyUpdate,
    EmailMessage,
    LocalUserRecord,
    RegistrationRequest,
    TemplatedEmail,
    TokenIntrospection,
    TokenSet,
    UserUpdate,
)
from src.domain.notifications import BulkDelivery
from src.domain.passwords import MAX_PASSWORD_BYTES
from src.domain.ports import EmailDelivery


def _password_fits_bcrypt(value: str | None) -> str | None:
    if value is not None and len(value.encode()) > MAX_PASSWORD_BYTES:
        raise ValueError(f"password cannot be longer than {MAX_PASSWORD_BYTES} bytes")
    return value


class CompanyIn(BaseModel):
    """Company sub-record submitted with a registration."""

    company_name: str | None = Field(None, max_length=255)
    tax_id: str | None = Field(None, max_length=50, description="Company tax identification number")
    phone_number: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    city: str | None = Field(None, max_length=100)
    zip_code: str | None = Field(None, max_length=20)


class RegisterRequest(BaseModel):
    """Request model for user registration."""

    username: str = Field(..., min_length=1, max_length=50)
    email: EmailStr
    password: str = Field(
        ..., min_length=8, description="User password (min 8 characters, max 72 bytes)"
    )
    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    phone_number: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    account_type: AccountType = AccountType.PERSONAL
    company: CompanyIn | None = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str) -> str:
        return _password_fits_bcrypt(value)

    def to_domain(self) -> RegistrationRequest:
        return RegistrationRequest(
            username=self.username,
            email=self.email,
            password=self.password,
            first_name=self.first_name,
            last_name=self.last_name,
            phone_number=self.phone_number,
            country=self.country,
            account_type=self.account_type,
            company=CompanyDetails(**self.company.model_dump()) if self.company else None,
        )


class CompanyResponse(BaseModel):
    id: int | None
    company_name: str | None
    tax_id: str | None
    phone_number: str | None
    country: str | None
    city: str | None
    zip_code: str | None


class UserResponse(BaseModel):
    """Public view of a local user. Never includes the password hash."""

    id: int | None
    account_type: AccountType
    first_name: str | None
    last_name: str | None
    username: str
    email: str
    phone_number: str | None
    country: str | None
    disabled: bool
    company: CompanyResponse | None = None

    @classmethod
    def from_domain(cls, user: LocalUserRecord) -> "UserResponse":
        company = None
        if user.company is not None:
            company = CompanyResponse(
                id=user.company.id,
                company_name=user.company.company_name,
                tax_id=user.company.tax_id,
                phone_number=user.company.phone_number,
                country=user.company.country,
                city=user.company.city,
                zip_code=user.company.zip_code,
            )
        return cls(
            id=user.id,
            account_type=user.account_type,
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            email=user.email,
            phone_number=user.phone_number,
            country=user.country,
            disabled=user.disabled,
            company=company,
        )


class StepsResponse(BaseModel):
    """Per-step status of a registration."""

    identity: str
    local_persist: str
    email: str


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    user: UserResponse
    email_sent: bool
    steps: StepsResponse


class RegistrationErrorResponse(BaseModel):
    """Response model for failed registrations."""

    code: str
    message: str
    steps: StepsResponse
    compensation: str | None = None
    requires_manual_cleanup: bool = False
    detail: str | None = None


class CompanyUpdateIn(BaseModel):
    company_name: str | None = Field(None, max_length=255)
    tax_id: str | None = Field(None, max_length=50)
    phone_number: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    city: str | None = Field(None, max_length=100)
    zip_code: str | None = Field(None, max_length=20)


class UpdateUserRequest(BaseModel):
    """Partial update; omitted fields stay unchanged."""

    first_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    email: EmailStr | None = None
    phone_number: str | None = Field(None, max_length=20)
    country: str | None = Field(None, max_length=100)
    password: str | None = Field(None, min_length=8)
    company: CompanyUpdateIn | None = None

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, value: str | None) -> str | None:
        return _password_fits_bcrypt(value)

    def to_domain(self) -> UserUpdate:
        return UserUpdate(
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            phone_number=self.phone_number,
            country=self.country,
            password=self.password,
            company=CompanyUpdate(**self.company.model_dump()) if self.company else None,
        )


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class IntrospectRequest(BaseModel):
    token: str = Field(..., min_length=1)


class TokenResponse(BaseModel):
    """OAuth2 token response relayed from the identity provider."""

    access_token: str
    token_type: str
    expires_in: int | None = None
    refresh_token: str | None = None
    refresh_expires_in: int | None = None
    scope: str | None = None

    @classmethod
    def from_domain(cls, tokens: TokenSet) -> "TokenResponse":
        return cls(
            access_token=tokens.access_token,
            token_type=tokens.token_type,
            expires_in=tokens.expires_in,
            refresh_token=tokens.refresh_token,
            refresh_expires_in=tokens.refresh_expires_in,
            scope=tokens.scope,
        )


class IntrospectResponse(BaseModel):
    active: bool
    subject: str | None = None
    username: str | None = None

    @classmethod
    def from_domain(cls, result: TokenIntrospection) -> "IntrospectResponse":
        return cls(active=result.active, subject=result.subject, username=result.username)


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str


class AvailabilityResponse(BaseModel):
    """Whether a username and/or email is already registered locally."""

    username_taken: bool | None = None
    email_taken: bool | None = None


class SendEmailRequest(BaseModel):
    """Single message with raw content."""

    to: EmailStr
    subject: str = Field(..., min_length=1, max_length=998)
    text_content: str = Field(..., min_length=1)
    html_content: str | None = None

    def to_domain(self) -> EmailMessage:
        return EmailMessage(
            to=self.to,
            subject=self.subject,
            text_content=self.text_content,
            html_content=self.html_content,
        )


class TemplateEmailRequest(BaseModel):
    """Message rendered by the email provider from a stored template."""

    to: EmailStr
    template_id: str = Field(..., min_length=1)
    template_data: dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> TemplatedEmail:
        return TemplatedEmail(
            to=self.to, template_id=self.template_id, template_data=self.template_data
        )


class BulkEmailRequest(BaseModel):
    emails: list[SendEmailRequest] = Field(..., min_length=1, max_length=1000)


class WelcomeEmailRequest(BaseModel):
    email: EmailStr
    name: str | None = Field(None, max_length=100)


class PasswordResetEmailRequest(BaseModel):
    email: EmailStr
    token: str = Field(..., min_length=1)


class EmailDeliveryResponse(BaseModel):
    sent: bool
    detail: str | None = None

    @classmethod
    def from_domain(cls, delivery: EmailDelivery) -> "EmailDeliveryResponse":
        return cls(sent=delivery.sent, detail=delivery.detail)


class BulkDeliveryResponse(BaseModel):
    sent: int
    failed: list[str]

    @classmethod
    def from_domain(cls, result: BulkDelivery) -> "BulkDeliveryResponse":
        return cls(sent=result.sent, failed=result.failed)
