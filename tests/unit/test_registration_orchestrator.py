"""
Unit tests for RegistrationOrchestrator domain logic.

Tests the identity-first flow with in-memory ports to verify:
- Happy path (identity, local record and email all succeed)
- Duplicate short-circuit before any identity-provider call
- Identity provider conflict and failure branches
- Compensation after a local persist failure
- Email failure is non-fatal
- Password hashing and request validation
"""

import logging
from dataclasses import replace
from unittest.mock import Mock

import bcrypt
import pytest

from src.domain.exceptions import IdentityProviderError, UserStoreError
from src.domain.models import CompanyDetails, LocalUserRecord, RegistrationRequest
from src.domain.outcomes import (
    CompensationResult,
    Conflict,
    Created,
    IdentityProviderFailure,
    InvalidRequest,
    LocalPersistFailure,
    StepStatus,
)
from src.domain.ports import EmailDelivery, IdentityCreation, IdentityDeletion
from src.domain.registration import RegistrationOrchestrator
from tests.fakes import (
    PROVIDER_DOWN,
    TEST_BCRYPT_COST,
    FakeIdentityProvider,
    InMemoryUserStore,
    RecordingEmailSender,
)


@pytest.fixture
def orchestrator(
    identity_provider: FakeIdentityProvider,
    user_store: InMemoryUserStore,
    email_sender: RecordingEmailSender,
) -> RegistrationOrchestrator:
    return RegistrationOrchestrator(
        identity_provider=identity_provider,
        user_store=user_store,
        email_sender=email_sender,
        bcrypt_cost=TEST_BCRYPT_COST,
    )


class TestSuccessfulRegistration:
    """Identity created, local record persisted, email sent."""

    def test_outcome_is_created_with_email_sent(
        self, orchestrator: RegistrationOrchestrator, alice: RegistrationRequest
    ) -> None:
        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, Created)
        assert outcome.email_sent is True
        assert outcome.identity_status is IdentityCreation.CREATED

    def test_exactly_one_identity_and_one_local_record(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        outcome = orchestrator.register_identity_first(alice)

        assert len(identity_provider.identities) == 1
        assert len(user_store.users) == 1
        identity = next(iter(identity_provider.identities.values()))
        local = next(iter(user_store.users.values()))
        assert identity.username == local.username == "alice"
        assert identity.email == local.email == "alice@x.com"
        assert outcome.user.id == local.id

    def test_identity_record_built_from_request(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        alice: RegistrationRequest,
    ) -> None:
        orchestrator.register_identity_first(alice)

        identity = next(iter(identity_provider.identities.values()))
        assert identity.enabled is True
        assert identity.email_verified is False
        assert identity.first_name == "Alice"
        assert len(identity.credentials) == 1
        assert identity.credentials[0].type == "password"
        assert identity.credentials[0].value == "Secret123"
        assert identity.credentials[0].temporary is True

    def test_permanent_password_when_configured(
        self,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        email_sender: RecordingEmailSender,
        alice: RegistrationRequest,
    ) -> None:
        orchestrator = RegistrationOrchestrator(
            identity_provider,
            user_store,
            email_sender,
            bcrypt_cost=TEST_BCRYPT_COST,
            temporary_password=False,
        )

        orchestrator.register_identity_first(alice)

        identity = next(iter(identity_provider.identities.values()))
        assert identity.credentials[0].temporary is False

    def test_welcome_email_sent_to_new_user(
        self,
        orchestrator: RegistrationOrchestrator,
        email_sender: RecordingEmailSender,
        alice: RegistrationRequest,
    ) -> None:
        orchestrator.register_identity_first(alice)
        assert email_sender.sent == [("alice@x.com", "Alice")]

    def test_steps_all_succeeded(
        self, orchestrator: RegistrationOrchestrator, alice: RegistrationRequest
    ) -> None:
        outcome = orchestrator.register_identity_first(alice)

        assert outcome.steps.identity is StepStatus.SUCCEEDED
        assert outcome.steps.local_persist is StepStatus.SUCCEEDED
        assert outcome.steps.email is StepStatus.SUCCEEDED

    def test_company_persisted_with_user(
        self,
        orchestrator: RegistrationOrchestrator,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        request = replace(
            alice,
            company=CompanyDetails(company_name="Wonderland d.o.o.", tax_id="123456789", city="Novi Sad"),
        )

        outcome = orchestrator.register_identity_first(request)

        assert isinstance(outcome, Created)
        assert outcome.user.company is not None
        assert outcome.user.company.company_name == "Wonderland d.o.o."
        assert outcome.user.company.id is not None
        assert user_store.create_calls[0].company.tax_id == "123456789"

    def test_call_order_is_credential_create_then_persist(
        self, alice: RegistrationRequest
    ) -> None:
        """Each step observes the previous one: credential, create, persist, email."""
        manager = Mock()
        manager.idp.fetch_admin_credential.return_value = Mock()
        manager.idp.create_identity.return_value = IdentityCreation.CREATED
        manager.store.find_by_email.return_value = None
        manager.store.create_user_and_company.side_effect = lambda user: replace(user, id=7)
        manager.email.send_welcome.return_value = EmailDelivery.delivered()

        orchestrator = RegistrationOrchestrator(
            identity_provider=manager.idp,
            user_store=manager.store,
            email_sender=manager.email,
            bcrypt_cost=TEST_BCRYPT_COST,
        )
        orchestrator.register_identity_first(alice)

        called = [name for name, _, _ in manager.mock_calls]
        assert called == [
            "store.find_by_email",
            "idp.fetch_admin_credential",
            "idp.create_identity",
            "store.create_user_and_company",
            "email.send_welcome",
        ]

    def test_admin_credential_fetched_per_registration(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        alice: RegistrationRequest,
    ) -> None:
        """The orchestrator never reuses an admin credential across requests."""
        orchestrator.register_identity_first(alice)
        orchestrator.register_identity_first(
            replace(alice, username="bob", email="bob@x.com")
        )
        assert identity_provider.count("fetch_admin_credential") == 2

    def test_email_and_username_are_trimmed(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        alice: RegistrationRequest,
    ) -> None:
        outcome = orchestrator.register_identity_first(
            replace(alice, username="  alice ", email=" alice@x.com ")
        )

        assert outcome.user.username == "alice"
        assert outcome.user.email == "alice@x.com"
        assert next(iter(identity_provider.identities.values())).username == "alice"


class TestPasswordHandling:
    """The plaintext password never reaches the store or the logs."""

    def test_password_is_hashed_before_persist(
        self,
        orchestrator: RegistrationOrchestrator,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        orchestrator.register_identity_first(alice)

        stored = user_store.create_calls[0]
        assert stored.password_hash != "Secret123"
        assert stored.password_hash.startswith("$2b$")
        assert bcrypt.checkpw(b"Secret123", stored.password_hash.encode())

    def test_password_hash_uses_configured_cost(
        self,
        orchestrator: RegistrationOrchestrator,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        orchestrator.register_identity_first(alice)
        assert user_store.create_calls[0].password_hash.startswith("$2b$04$")

    def test_password_never_logged(
        self,
        orchestrator: RegistrationOrchestrator,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        user_store.create_error = UserStoreError("unique violation")

        with caplog.at_level(logging.DEBUG):
            orchestrator.register_identity_first(alice)

        assert "Secret123" not in caplog.text

    def test_request_repr_hides_password(self, alice: RegistrationRequest) -> None:
        assert "Secret123" not in repr(alice)


class TestRequestValidation:
    """Caller errors end the flow before any identity-provider call."""

    @pytest.mark.parametrize(
        ("username", "email"),
        [("", "alice@x.com"), ("alice", ""), ("   ", "alice@x.com"), ("alice", "  ")],
    )
    def test_missing_fields_rejected(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
        username: str,
        email: str,
    ) -> None:
        outcome = orchestrator.register_identity_first(
            replace(alice, username=username, email=email)
        )

        assert isinstance(outcome, InvalidRequest)
        assert identity_provider.calls == []
        assert user_store.create_calls == []

    def test_none_values_rejected(self, alice: RegistrationRequest) -> None:
        store = Mock()
        idp = Mock()
        orchestrator = RegistrationOrchestrator(idp, store, Mock())

        outcome = orchestrator.register_identity_first(replace(alice, email=None))

        assert isinstance(outcome, InvalidRequest)
        store.find_by_email.assert_not_called()
        idp.fetch_admin_credential.assert_not_called()

    @pytest.mark.parametrize("password", ["p" * 73, "p" * 80, "č" * 40])
    def test_password_longer_than_bcrypt_accepts(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
        password: str,
    ) -> None:
        """Rejected before the identity provider is contacted; nothing to compensate."""
        outcome = orchestrator.register_identity_first(replace(alice, password=password))

        assert isinstance(outcome, InvalidRequest)
        assert "72 bytes" in outcome.reason
        assert identity_provider.calls == []
        assert identity_provider.identities == {}
        assert user_store.create_calls == []

    def test_password_of_72_bytes_accepted(
        self, orchestrator: RegistrationOrchestrator, alice: RegistrationRequest
    ) -> None:
        outcome = orchestrator.register_identity_first(replace(alice, password="p" * 72))
        assert isinstance(outcome, Created)


class TestDuplicateShortCircuit:
    """An email already registered locally ends the flow with Conflict."""

    def test_existing_email_returns_conflict(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        user_store.users[1] = LocalUserRecord(id=1, username="someone", email="alice@x.com")

        outcome = orchestrator.register_identity_first(alice)

        assert outcome == Conflict("email already registered")
        assert identity_provider.calls == []
        assert user_store.create_calls == []

    def test_store_error_during_check_is_retry_safe(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        user_store.find_error = UserStoreError("database unavailable")

        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, LocalPersistFailure)
        assert outcome.compensation is CompensationResult.NOT_REQUIRED
        assert outcome.requires_manual_cleanup is False
        assert outcome.steps.identity is StepStatus.SKIPPED
        assert identity_provider.calls == []


class TestIdentityProviderBranches:
    """Conflict and failure answers from the identity provider."""

    def test_identity_conflict_returns_conflict(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        orchestrator.register_identity_first(replace(alice, email="other@x.com"))
        user_store.users.clear()

        outcome = orchestrator.register_identity_first(alice)

        assert outcome == Conflict("identity already exists")
        assert identity_provider.count("delete_identity") == 0
        assert len(user_store.create_calls) == 1

    def test_create_failure_returns_identity_provider_failure(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        identity_provider.create_error = IdentityProviderError("create identity failed with status 500", 500)

        outcome = orchestrator.register_identity_first(alice)

        assert outcome == IdentityProviderFailure("create identity failed with status 500")
        assert user_store.create_calls == []

    def test_admin_credential_failure_returns_identity_provider_failure(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        identity_provider.admin_error = PROVIDER_DOWN

        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, IdentityProviderFailure)
        assert identity_provider.count("create_identity") == 0
        assert user_store.create_calls == []

    def test_timeout_returns_identity_provider_failure(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        alice: RegistrationRequest,
    ) -> None:
        identity_provider.create_error = IdentityProviderError("identity provider timed out: read timeout")

        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, IdentityProviderFailure)
        assert "timed out" in outcome.detail

    def test_failure_steps_report(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        alice: RegistrationRequest,
    ) -> None:
        identity_provider.create_error = PROVIDER_DOWN

        outcome = orchestrator.register_identity_first(alice)

        assert outcome.steps.identity is StepStatus.FAILED
        assert outcome.steps.local_persist is StepStatus.SKIPPED
        assert outcome.steps.email is StepStatus.SKIPPED

    def test_retry_after_failure_matches_first_attempt(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        """A failed attempt leaves nothing behind, so a retry behaves like a first attempt."""
        identity_provider.create_error = PROVIDER_DOWN
        orchestrator.register_identity_first(alice)

        assert identity_provider.identities == {}
        assert user_store.users == {}

        identity_provider.create_error = None
        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, Created)
        assert len(identity_provider.identities) == 1
        assert len(user_store.users) == 1


class TestCompensation:
    """Local persist failure after identity creation deletes the identity again."""

    def test_unique_violation_compensates(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        email_sender: RecordingEmailSender,
        alice: RegistrationRequest,
    ) -> None:
        user_store.create_error = UserStoreError("unique violation")

        outcome = orchestrator.register_identity_first(alice)

        assert outcome == LocalPersistFailure("unique violation", CompensationResult.SUCCEEDED)
        assert identity_provider.count("delete_identity") == 1
        assert identity_provider.identities == {}
        assert user_store.users == {}
        assert email_sender.sent == []

    def test_delete_keyed_by_created_username(self, alice: RegistrationRequest) -> None:
        idp = Mock()
        idp.create_identity.return_value = IdentityCreation.CREATED
        idp.find_identity_by_username.return_value = "kc-42"
        idp.delete_identity.return_value = IdentityDeletion.DELETED
        store = Mock()
        store.find_by_email.return_value = None
        store.create_user_and_company.side_effect = UserStoreError("unique violation")
        orchestrator = RegistrationOrchestrator(idp, store, Mock(), bcrypt_cost=TEST_BCRYPT_COST)

        orchestrator.register_identity_first(alice)

        assert idp.find_identity_by_username.call_args[0][1] == "alice"
        idp.delete_identity.assert_called_once()
        assert idp.delete_identity.call_args[0][1] == "kc-42"

    def test_compensated_steps_report(
        self,
        orchestrator: RegistrationOrchestrator,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        user_store.create_error = UserStoreError("database unavailable")

        outcome = orchestrator.register_identity_first(alice)

        assert outcome.steps.identity is StepStatus.COMPENSATED
        assert outcome.steps.local_persist is StepStatus.FAILED
        assert outcome.steps.email is StepStatus.SKIPPED
        assert outcome.requires_manual_cleanup is False

    def test_identity_not_found_skips_compensation(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        user_store.create_error = UserStoreError("unique violation")
        identity_provider.find_returns_none = True

        outcome = orchestrator.register_identity_first(alice)

        assert outcome.compensation is CompensationResult.SKIPPED_NOT_FOUND
        assert identity_provider.count("delete_identity") == 0

    def test_delete_not_found_is_skipped(self, alice: RegistrationRequest) -> None:
        idp = Mock()
        idp.create_identity.return_value = IdentityCreation.CREATED
        idp.find_identity_by_username.return_value = "kc-1"
        idp.delete_identity.return_value = IdentityDeletion.NOT_FOUND
        store = Mock()
        store.find_by_email.return_value = None
        store.create_user_and_company.side_effect = UserStoreError("unique violation")
        orchestrator = RegistrationOrchestrator(idp, store, Mock(), bcrypt_cost=TEST_BCRYPT_COST)

        outcome = orchestrator.register_identity_first(alice)

        assert outcome.compensation is CompensationResult.SKIPPED_NOT_FOUND

    def test_delete_failure_requires_manual_cleanup(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        user_store.create_error = UserStoreError("unique violation")
        identity_provider.delete_error = IdentityProviderError("delete identity failed with status 500", 500)

        with caplog.at_level(logging.CRITICAL):
            outcome = orchestrator.register_identity_first(alice)

        assert outcome == LocalPersistFailure("unique violation", CompensationResult.FAILED)
        assert outcome.requires_manual_cleanup is True
        assert outcome.retry_safe is False
        assert outcome.steps.identity is StepStatus.SUCCEEDED
        assert len(identity_provider.identities) == 1
        critical = [r for r in caplog.records if r.levelno == logging.CRITICAL]
        assert len(critical) == 1
        assert "alice" in critical[0].getMessage()

    def test_compensation_timeout_is_failed(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        user_store.create_error = UserStoreError("database unavailable")
        identity_provider.find_error = IdentityProviderError("identity provider timed out: read timeout")

        outcome = orchestrator.register_identity_first(alice)

        assert outcome.compensation is CompensationResult.FAILED
        assert identity_provider.count("delete_identity") == 0

    def test_admin_credential_failure_during_compensation_is_failed(
        self, alice: RegistrationRequest
    ) -> None:
        idp = Mock()
        idp.fetch_admin_credential.side_effect = [Mock(), PROVIDER_DOWN]
        idp.create_identity.return_value = IdentityCreation.CREATED
        store = Mock()
        store.find_by_email.return_value = None
        store.create_user_and_company.side_effect = UserStoreError("database unavailable")
        orchestrator = RegistrationOrchestrator(idp, store, Mock(), bcrypt_cost=TEST_BCRYPT_COST)

        outcome = orchestrator.register_identity_first(alice)

        assert outcome.compensation is CompensationResult.FAILED
        idp.delete_identity.assert_not_called()

    def test_unexpected_store_exception_still_compensates(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        user_store.create_error = TimeoutError("pool exhausted")

        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, LocalPersistFailure)
        assert outcome.compensation is CompensationResult.SUCCEEDED
        assert identity_provider.identities == {}

    def test_retry_after_failed_compensation_hits_identity_conflict(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        alice: RegistrationRequest,
    ) -> None:
        """The dangling identity blocks a second local record for the same user."""
        user_store.create_error = UserStoreError("database unavailable")
        identity_provider.delete_error = PROVIDER_DOWN
        orchestrator.register_identity_first(alice)

        user_store.create_error = None
        identity_provider.delete_error = None
        outcome = orchestrator.register_identity_first(alice)

        assert outcome == Conflict("identity already exists")
        assert user_store.users == {}


class TestEmailDegradation:
    """Email failure never fails the registration."""

    def test_reported_failure_still_created(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        user_store: InMemoryUserStore,
        email_sender: RecordingEmailSender,
        alice: RegistrationRequest,
    ) -> None:
        email_sender.delivery = EmailDelivery.failed("rejected with status 401")

        outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, Created)
        assert outcome.email_sent is False
        assert outcome.steps.email is StepStatus.FAILED
        assert identity_provider.count("delete_identity") == 0
        assert len(user_store.users) == 1

    def test_raised_failure_still_created(
        self,
        orchestrator: RegistrationOrchestrator,
        identity_provider: FakeIdentityProvider,
        email_sender: RecordingEmailSender,
        alice: RegistrationRequest,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        email_sender.error = ConnectionError("smtp down")

        with caplog.at_level(logging.WARNING):
            outcome = orchestrator.register_identity_first(alice)

        assert isinstance(outcome, Created)
        assert outcome.email_sent is False
        assert identity_provider.count("delete_identity") == 0
        assert "smtp down" in caplog.text
