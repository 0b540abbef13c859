"""
Registration domain service - Identity-first registration state machine.

This module contains the core business logic for user registration:
the identity is created in the external identity provider first, the
local record is persisted second and the welcome email is sent last.

Identity-First State Machine
============================

States:
- START: Request received
- CHECKING_DUPLICATE: Looking up the email in the local store
- CREATING_IDENTITY: Creating the identity provider-side
- PERSISTING_LOCAL: Writing user + company in one local transaction
- COMPENSATING_IDENTITY: Deleting the identity after a local persist failure
- SENDING_EMAIL: Best-effort welcome notification
- DONE: Terminal outcome returned

Transitions:
    START -> CHECKING_DUPLICATE                (email and username present)
    CHECKING_DUPLICATE -> CREATING_IDENTITY    (email not registered, password hashable)
    CREATING_IDENTITY -> PERSISTING_LOCAL      (identity created)
    PERSISTING_LOCAL -> SENDING_EMAIL          (local record committed)
    PERSISTING_LOCAL -> COMPENSATING_IDENTITY  (local record not committed)
    COMPENSATING_IDENTITY -> DONE
    SENDING_EMAIL -> DONE                      (sent or not)

Any other answer ends the flow early with Conflict, InvalidRequest or
IdentityProviderFailure. Steps are strictly sequential; there is no
distributed transaction, compensation approximates atomicity between
"identity exists" and "local record exists".

Invariant: a local record is only written after its identity was created.
If the write fails the identity is deleted again before returning, and a
failed deletion is reported as requiring manual cleanup.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum

from .exceptions import IdentityProviderError, InvalidPassword, UserStoreError
from .models import CompanyRecord, IdentityRecord, LocalUserRecord, RegistrationRequest
from .outcomes import (
    CompensationResult,
    Conflict,
    Created,
    IdentityProviderFailure,
    InvalidRequest,
    LocalPersistFailure,
    RegistrationOutcome,
)
from .passwords import DEFAULT_ROUNDS, hash_password
from .ports import EmailSender, IdentityCreation, IdentityDeletion, IdentityProvider, UserStore

logger = logging.getLogger(__name__)


class RegistrationState(str, Enum):
    """States of the identity-first registration flow."""

    START = "START"
    CHECKING_DUPLICATE = "CHECKING_DUPLICATE"
    CREATING_IDENTITY = "CREATING_IDENTITY"
    PERSISTING_LOCAL = "PERSISTING_LOCAL"
    COMPENSATING_IDENTITY = "COMPENSATING_IDENTITY"
    SENDING_EMAIL = "SENDING_EMAIL"
    DONE = "DONE"


@dataclass
class RegistrationOrchestrator:
    """
    Domain service for identity-first user registration.

    Orchestrates the registration flow across the identity provider,
    the local user store and the email sender. Request-scoped: holds
    no state between calls, and fetches a fresh admin credential for
    every registration.
    """

    identity_provider: IdentityProvider
    user_store: UserStore
    email_sender: EmailSender
    bcrypt_cost: int = DEFAULT_ROUNDS
    temporary_password: bool = True

    def register_identity_first(self, request: RegistrationRequest) -> RegistrationOutcome:
        """
        Register a new user: identity first, then local record, then email.

        Never raises for expected failures; every path ends in a
        RegistrationOutcome variant.

        Args:
            request: Registration payload with plaintext password

        Returns:
            Created, Conflict, InvalidRequest, IdentityProviderFailure or
            LocalPersistFailure
        """
        username = (request.username or "").strip()
        email = (request.email or "").strip()
        if not email or not username:
            logger.info("Registration rejected: email and username are required")
            return InvalidRequest("email and username are required")
        request = replace(request, username=username, email=email)

        self._transition(RegistrationState.CHECKING_DUPLICATE, username)
        try:
            existing = self.user_store.find_by_email(email)
        except UserStoreError as exc:
            logger.error("Duplicate check failed for %s: %s", email, exc.detail)
            return self._done(LocalPersistFailure(exc.detail, CompensationResult.NOT_REQUIRED))
        if existing is not None:
            logger.warning("Registration conflict, email already registered: %s", email)
            return self._done(Conflict("email already registered"))

        # Hashed up front: a password bcrypt rejects must not create an identity
        try:
            password_hash = hash_password(request.password, self.bcrypt_cost)
        except InvalidPassword as exc:
            logger.info("Registration rejected for %s: %s", username, exc)
            return self._done(InvalidRequest(str(exc)))

        self._transition(RegistrationState.CREATING_IDENTITY, username)
        try:
            credential = self.identity_provider.fetch_admin_credential()
            identity_status = self.identity_provider.create_identity(
                credential,
                IdentityRecord.from_registration(request, self.temporary_password),
            )
        except IdentityProviderError as exc:
            logger.error("Identity creation failed for %s: %s", username, exc.detail)
            return self._done(IdentityProviderFailure(exc.detail))

        if identity_status is IdentityCreation.CONFLICT:
            logger.warning("Registration conflict, identity already exists: %s", username)
            return self._done(Conflict("identity already exists"))

        self._transition(RegistrationState.PERSISTING_LOCAL, username)
        try:
            saved_user = self.user_store.create_user_and_company(
                self._to_local_record(request, password_hash)
            )
        except Exception as exc:
            # Identity exists without a local record from here on
            detail = exc.detail if isinstance(exc, UserStoreError) else str(exc)
            logger.error("Local persist failed for %s: %s", username, detail)
            self._transition(RegistrationState.COMPENSATING_IDENTITY, username)
            compensation = self._compensate_identity(username)
            return self._done(LocalPersistFailure(detail, compensation))

        self._transition(RegistrationState.SENDING_EMAIL, username)
        email_sent = self._send_welcome(saved_user)

        logger.info(
            "Registration completed for %s (user id %s, email sent: %s)",
            username,
            saved_user.id,
            email_sent,
        )
        return self._done(Created(saved_user, email_sent=email_sent, identity_status=identity_status))

    def _compensate_identity(self, username: str) -> CompensationResult:
        """
        Delete the identity created for ``username`` during this registration.

        The provider id is re-resolved by username because the create call
        does not hand it back. A fresh admin credential is fetched since the
        one used for creation may have expired meanwhile.
        """
        try:
            credential = self.identity_provider.fetch_admin_credential()
            provider_id = self.identity_provider.find_identity_by_username(credential, username)
            if provider_id is None:
                logger.warning("Compensation skipped, identity not found: %s", username)
                return CompensationResult.SKIPPED_NOT_FOUND
            deletion = self.identity_provider.delete_identity(credential, provider_id)
        except Exception:
            logger.critical(
                "Compensation failed, identity %s has no local record and requires manual cleanup",
                username,
                exc_info=True,
            )
            return CompensationResult.FAILED

        if deletion is IdentityDeletion.NOT_FOUND:
            logger.warning("Compensation skipped, identity vanished before delete: %s", username)
            return CompensationResult.SKIPPED_NOT_FOUND

        logger.info("Compensation succeeded, identity deleted: %s", username)
        return CompensationResult.SUCCEEDED

    def _send_welcome(self, user: LocalUserRecord) -> bool:
        """Send the welcome email; failures are logged and never propagated."""
        try:
            delivery = self.email_sender.send_welcome(user.email, user.first_name)
        except Exception as exc:
            logger.warning("Welcome email to %s raised: %s", user.email, exc)
            return False
        if not delivery.sent:
            logger.warning("Welcome email to %s not sent: %s", user.email, delivery.detail)
        return delivery.sent

    def _to_local_record(self, request: RegistrationRequest, password_hash: str) -> LocalUserRecord:
        """Map the request onto a new local record carrying the bcrypt hash."""
        company = CompanyRecord.from_details(request.company) if request.company else None
        return LocalUserRecord(
            username=request.username,
            email=request.email,
            password_hash=password_hash,
            account_type=request.account_type,
            first_name=request.first_name,
            last_name=request.last_name,
            phone_number=request.phone_number,
            country=request.country,
            disabled=False,
            company=company,
        )

    def _transition(self, state: RegistrationState, username: str) -> None:
        logger.debug("Registration %s -> %s", username, state.value)

    def _done(self, outcome: RegistrationOutcome) -> RegistrationOutcome:
        logger.debug("Registration -> %s (%s)", RegistrationState.DONE.value, type(outcome).__name__)
        return outcome
