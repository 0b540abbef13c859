"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.

Failure contract:
- IdentityProvider and UserStore signal upstream failures by raising
  IdentityProviderError / UserStoreError. Expected answers such as
  "already exists" or "not found" are returned as enum values, not raised.
- EmailSender never raises; delivery problems come back as an
  EmailDelivery with ``sent=False``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .models import (
    EmailMessage,
    IdentityRecord,
    LocalUserRecord,
    TemplatedEmail,
    TokenIntrospection,
    TokenSet,
)


class IdentityCreation(Enum):
    """Answer of the identity provider to a create-identity call."""

    CREATED = "created"
    CONFLICT = "conflict"


class IdentityDeletion(Enum):
    """Answer of the identity provider to a delete-identity call."""

    DELETED = "deleted"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class EmailDelivery:
    """Result of a best-effort email send."""

    sent: bool
    detail: str | None = None

    @classmethod
    def delivered(cls) -> "EmailDelivery":
        return cls(sent=True)

    @classmethod
    def failed(cls, detail: str) -> "EmailDelivery":
        return cls(sent=False, detail=detail)


class IdentityProvider(Protocol):
    """Port interface for the external identity provider."""

    def fetch_admin_credential(self) -> TokenSet:
        """
        Obtain a short-lived administrative credential.

        Raises:
            IdentityProviderError: If the credential cannot be issued
        """
        ...

    def create_identity(self, credential: TokenSet, identity: IdentityRecord) -> IdentityCreation:
        """
        Create an identity record.

        Returns:
            CREATED on success, CONFLICT if the identity already exists

        Raises:
            IdentityProviderError: On any other provider answer or transport error
        """
        ...

    def delete_identity(self, credential: TokenSet, provider_id: str) -> IdentityDeletion:
        """
        Delete an identity record by its provider-side id.

        Returns:
            DELETED on success, NOT_FOUND if no such identity exists

        Raises:
            IdentityProviderError: On any other provider answer or transport error
        """
        ...

    def find_identity_by_username(self, credential: TokenSet, username: str) -> str | None:
        """
        Resolve the provider-side id of an identity by exact username.

        Returns:
            The provider id, or None if no identity has this username
        """
        ...

    def issue_user_token(self, username: str, password: str) -> TokenSet:
        """Exchange user credentials for tokens (password grant)."""
        ...

    def refresh_user_token(self, refresh_token: str) -> TokenSet:
        """Exchange a refresh token for a new token set."""
        ...

    def introspect_token(self, token: str) -> TokenIntrospection:
        """Ask the provider whether a token is active and for whom."""
        ...

    def revoke_refresh_token(self, refresh_token: str) -> None:
        """End the session bound to a refresh token."""
        ...


class UserStore(Protocol):
    """Port interface for local user persistence."""

    def find_by_email(self, email: str) -> LocalUserRecord | None:
        """Return the user registered with this email, or None."""
        ...

    def find_by_username(self, username: str) -> LocalUserRecord | None:
        """Return the user registered with this username, or None."""
        ...

    def find_by_id(self, user_id: int) -> LocalUserRecord | None:
        """Return the user with this surrogate id, or None."""
        ...

    def create_user_and_company(self, user: LocalUserRecord) -> LocalUserRecord:
        """
        Persist a user and its optional company in one transaction.

        Returns:
            The stored record with ids assigned

        Raises:
            UserStoreError: On constraint violation, connection error or timeout.
                Nothing is persisted when this is raised.
        """
        ...

    def update_user(self, user: LocalUserRecord) -> LocalUserRecord:
        """
        Write back a modified user (and its company) in one transaction.

        Raises:
            UserStoreError: If the write fails
        """
        ...


class EmailSender(Protocol):
    """Port interface for email delivery."""

    def send_welcome(self, email: str, first_name: str | None) -> EmailDelivery:
        """
        Send the welcome notification to a newly registered user.

        Args:
            email: Recipient email address
            first_name: Name used in the greeting, may be None

        Returns:
            EmailDelivery describing whether the message was accepted
        """
        ...

    def send(self, message: EmailMessage) -> EmailDelivery:
        """Send a message with raw text and optional HTML content."""
        ...

    def send_template(self, email: TemplatedEmail) -> EmailDelivery:
        """Send a message rendered by the provider from a stored template."""
        ...
