"""
User lifecycle service - Single-call account operations.

Each operation makes one call into the identity provider or the user
store (fetching an admin credential first where the provider requires
one). There is no multi-step compensation here; failures propagate as
domain exceptions and the HTTP layer maps them to responses.

Profile reads and writes take the authenticated caller explicitly: a
caller may act on the local record carrying their own username, and a
caller holding ``admin_role`` may act on any record.
"""

import logging
from dataclasses import dataclass

from .exceptions import AccessDenied, IdentityNotFound, UserNotFound
from .models import (
    CallerIdentity,
    CompanyUpdate,
    CompanyRecord,
    LocalUserRecord,
    TokenIntrospection,
    TokenSet,
    UserUpdate,
)
from .passwords import DEFAULT_ROUNDS, hash_password
from .ports import IdentityDeletion, IdentityProvider, UserStore

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ROLE = "admin"


@dataclass
class UserLifecycleService:
    """Façade for login, token, profile and deletion operations."""

    identity_provider: IdentityProvider
    user_store: UserStore
    bcrypt_cost: int = DEFAULT_ROUNDS
    admin_role: str = DEFAULT_ADMIN_ROLE

    def admin_token(self) -> TokenSet:
        """Issue an administrative credential from the identity provider."""
        return self.identity_provider.fetch_admin_credential()

    def login(self, username: str, password: str) -> TokenSet:
        """
        Exchange user credentials for tokens.

        Raises:
            AuthenticationRejected: If the provider refuses the credentials
            IdentityProviderError: If the provider is unavailable
        """
        tokens = self.identity_provider.issue_user_token(username, password)
        logger.info("Login succeeded for %s", username)
        return tokens

    def refresh(self, refresh_token: str) -> TokenSet:
        return self.identity_provider.refresh_user_token(refresh_token)

    def introspect(self, token: str) -> TokenIntrospection:
        return self.identity_provider.introspect_token(token)

    def logout(self, refresh_token: str) -> None:
        self.identity_provider.revoke_refresh_token(refresh_token)

    def is_admin(self, caller: CallerIdentity) -> bool:
        return caller.has_role(self.admin_role)

    def is_username_taken(self, username: str) -> bool:
        return self.user_store.find_by_username(username) is not None

    def is_email_taken(self, email: str) -> bool:
        return self.user_store.find_by_email(email) is not None

    def get_user(self, user_id: int, caller: CallerIdentity) -> LocalUserRecord:
        """
        Raises:
            UserNotFound: If no local user has this id
            AccessDenied: If the record belongs to someone else and the
                caller is not an admin
        """
        user = self.user_store.find_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)
        if not (self.is_admin(caller) or caller.username == user.username):
            logger.warning("User %s denied access to user %s", caller.username, user_id)
            raise AccessDenied(user_id)
        return user

    def update_user(
        self, user_id: int, update: UserUpdate, caller: CallerIdentity
    ) -> LocalUserRecord:
        """
        Apply a partial update to a local user.

        Only fields present in ``update`` change. A new password is hashed
        before it reaches the store. Company fields are applied only when the
        user already owns a company.

        Raises:
            UserNotFound: If no local user has this id
            AccessDenied: If the caller may not modify this user
            InvalidPassword: If the new password cannot be hashed
            UserStoreError: If the write fails
        """
        user = self.get_user(user_id, caller)
        for name in ("first_name", "last_name", "email", "phone_number", "country"):
            value = getattr(update, name)
            if value is not None:
                setattr(user, name, value)
        if update.password is not None:
            user.password_hash = hash_password(update.password, self.bcrypt_cost)
        if update.company is not None and user.company is not None:
            _apply_company_update(user.company, update.company)

        saved = self.user_store.update_user(user)
        logger.info("User %s updated by %s", user_id, caller.username)
        return saved

    def delete_identity(self, provider_id: str) -> None:
        """
        Delete an identity provider-side by its provider id.

        Raises:
            IdentityNotFound: If the provider has no such identity
            IdentityProviderError: On any other provider failure
        """
        credential = self.identity_provider.fetch_admin_credential()
        result = self.identity_provider.delete_identity(credential, provider_id)
        if result is IdentityDeletion.NOT_FOUND:
            raise IdentityNotFound(provider_id)
        logger.info("Identity %s deleted", provider_id)

    def delete_caller(self, caller: CallerIdentity) -> None:
        """Delete the authenticated caller's own identity."""
        self.delete_identity(caller.subject)


def _apply_company_update(company: CompanyRecord, update: CompanyUpdate) -> None:
    for name in ("company_name", "tax_id", "phone_number", "country", "city", "zip_code"):
        value = getattr(update, name)
        if value is not None:
            setattr(company, name, value)
