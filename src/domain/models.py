"""
Domain models - Plain data carried between the gateway and its ports.

These dataclasses describe the registration payload, the identity-provider
representation of a user, the local user/company record and the token
material returned by the identity provider, plus outgoing email messages.
They carry no behaviour beyond small derived values and know nothing about
HTTP or SQL.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class AccountType(str, Enum):
    """Kind of account held by a local user."""

    PERSONAL = "PERSONAL"
    BUSINESS = "BUSINESS"


@dataclass
class CompanyDetails:
    """Company sub-record submitted alongside a registration."""

    company_name: str | None = None
    tax_id: str | None = None
    phone_number: str | None = None
    country: str | None = None
    city: str | None = None
    zip_code: str | None = None


@dataclass
class RegistrationRequest:
    """
    Validated registration payload.

    The password is plaintext here; it is handed to the identity provider as a
    credential and hashed before anything is persisted locally.
    """

    username: str
    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    country: str | None = None
    account_type: AccountType = AccountType.PERSONAL
    company: CompanyDetails | None = None

    def __repr__(self) -> str:
        # Keep the plaintext password out of logs and tracebacks
        return (
            f"RegistrationRequest(username={self.username!r}, email={self.email!r}, "
            f"account_type={self.account_type.value!r}, company={self.company is not None})"
        )


@dataclass
class PasswordCredential:
    """Credential entry attached to an identity record."""

    value: str
    temporary: bool = True
    type: str = "password"

    def __repr__(self) -> str:
        return f"PasswordCredential(type={self.type!r}, temporary={self.temporary})"


@dataclass
class IdentityRecord:
    """Identity-provider side representation of a user."""

    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    enabled: bool = True
    email_verified: bool = False
    credentials: list[PasswordCredential] = field(default_factory=list)

    @classmethod
    def from_registration(
        cls, request: RegistrationRequest, temporary_password: bool = True
    ) -> "IdentityRecord":
        """
        Build the record submitted to the identity provider for a new user.

        The password is submitted as a temporary credential unless
        ``temporary_password`` is False; a temporary credential makes the
        provider ask for a new password on first login.
        """
        return cls(
            username=request.username,
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            enabled=True,
            email_verified=False,
            credentials=[PasswordCredential(value=request.password, temporary=temporary_password)],
        )


@dataclass
class CompanyRecord:
    """Company owned by a local user (one-to-one, same lifetime)."""

    id: int | None = None
    company_name: str | None = None
    tax_id: str | None = None
    phone_number: str | None = None
    country: str | None = None
    city: str | None = None
    zip_code: str | None = None

    @classmethod
    def from_details(cls, details: CompanyDetails) -> "CompanyRecord":
        return cls(
            company_name=details.company_name,
            tax_id=details.tax_id,
            phone_number=details.phone_number,
            country=details.country,
            city=details.city,
            zip_code=details.zip_code,
        )


@dataclass
class LocalUserRecord:
    """
    Durable local representation of a user.

    ``id`` is None until the store assigns it. ``password_hash`` is a bcrypt
    hash; the plaintext password is never stored on this record.
    """

    username: str
    email: str
    password_hash: str | None = None
    id: int | None = None
    account_type: AccountType = AccountType.PERSONAL
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    country: str | None = None
    disabled: bool = False
    company: CompanyRecord | None = None


@dataclass
class CompanyUpdate:
    """Partial company update; None fields are left unchanged."""

    company_name: str | None = None
    tax_id: str | None = None
    phone_number: str | None = None
    country: str | None = None
    city: str | None = None
    zip_code: str | None = None


@dataclass
class UserUpdate:
    """Partial user update; None fields are left unchanged."""

    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone_number: str | None = None
    country: str | None = None
    password: str | None = None
    company: CompanyUpdate | None = None

    def __repr__(self) -> str:
        return (
            f"UserUpdate(email={self.email!r}, password_changed={self.password is not None}, "
            f"company={self.company is not None})"
        )


@dataclass(frozen=True)
class TokenSet:
    """Token response from the identity provider's token endpoint."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int | None = None
    refresh_token: str | None = None
    refresh_expires_in: int | None = None
    scope: str | None = None

    @property
    def authorization_header(self) -> str:
        """Value for an ``Authorization`` header carrying this token."""
        return f"Bearer {self.access_token}"

    def __repr__(self) -> str:
        return f"TokenSet(token_type={self.token_type!r}, expires_in={self.expires_in})"


@dataclass(frozen=True)
class TokenIntrospection:
    """Result of an RFC 7662 token introspection."""

    active: bool
    subject: str | None = None
    username: str | None = None
    claims: dict[str, Any] = field(default_factory=dict)

    @property
    def roles(self) -> frozenset[str]:
        """Realm roles (Keycloak ``realm_access.roles``) or a top-level ``roles`` claim."""
        realm_access = self.claims.get("realm_access") or {}
        roles = realm_access.get("roles") or self.claims.get("roles") or []
        return frozenset(roles)


@dataclass(frozen=True)
class CallerIdentity:
    """Authenticated caller, resolved by the HTTP layer and passed explicitly."""

    subject: str
    username: str | None = None
    roles: frozenset[str] = frozenset()

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass(frozen=True)
class EmailMessage:
    """A single-recipient message with plain-text and optional HTML bodies."""

    to: str
    subject: str
    text_content: str
    html_content: str | None = None


@dataclass(frozen=True)
class TemplatedEmail:
    """A message rendered by the email provider from a stored template."""

    to: str
    template_id: str
    template_data: dict[str, Any] = field(default_factory=dict)
