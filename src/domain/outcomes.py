"""
Registration outcomes - Typed terminal results of the orchestrator.

Every exit of the identity-first registration flow is one of the variants
below. Expected terminal states (conflicts, upstream failures) are values,
not exceptions. Each variant carries only the fields relevant to its path
and reports, through ``steps``, what happened to each side effect.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

from .models import LocalUserRecord
from .ports import IdentityCreation


class CompensationResult(str, Enum):
    """
    Result of deleting an orphaned identity after a local persist failure.

    NOT_REQUIRED is used when the store failed before any identity was created.
    """

    SUCCEEDED = "succeeded"
    SKIPPED_NOT_FOUND = "skipped-not-found"
    FAILED = "failed"
    NOT_REQUIRED = "not-required"


class StepStatus(str, Enum):
    """What happened to one side effect of a registration."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"
    COMPENSATED = "compensated"


@dataclass(frozen=True)
class StepReport:
    """Per-step summary: identity creation, local persistence, email."""

    identity: StepStatus
    local_persist: StepStatus
    email: StepStatus


_NOTHING_DONE = StepReport(StepStatus.SKIPPED, StepStatus.SKIPPED, StepStatus.SKIPPED)


@dataclass(frozen=True)
class Created:
    """Identity and local record exist; email may or may not have been sent."""

    user: LocalUserRecord
    email_sent: bool
    identity_status: IdentityCreation = IdentityCreation.CREATED

    @property
    def steps(self) -> StepReport:
        return StepReport(
            identity=StepStatus.SUCCEEDED,
            local_persist=StepStatus.SUCCEEDED,
            email=StepStatus.SUCCEEDED if self.email_sent else StepStatus.FAILED,
        )


@dataclass(frozen=True)
class Conflict:
    """The email is registered locally or the identity exists provider-side."""

    reason: str

    @property
    def steps(self) -> StepReport:
        return _NOTHING_DONE


@dataclass(frozen=True)
class IdentityProviderFailure:
    """Identity creation failed; nothing was created, a retry is safe."""

    detail: str

    @property
    def steps(self) -> StepReport:
        return StepReport(StepStatus.FAILED, StepStatus.SKIPPED, StepStatus.SKIPPED)


@dataclass(frozen=True)
class LocalPersistFailure:
    """
    The local record could not be written.

    When the identity had already been created, ``compensation`` tells
    whether it was deleted again. FAILED leaves an identity without a local
    record and must be cleaned up by an operator.
    """

    detail: str
    compensation: CompensationResult

    @property
    def requires_manual_cleanup(self) -> bool:
        return self.compensation is CompensationResult.FAILED

    @property
    def retry_safe(self) -> bool:
        return not self.requires_manual_cleanup

    @property
    def steps(self) -> StepReport:
        if self.compensation is CompensationResult.NOT_REQUIRED:
            identity = StepStatus.SKIPPED
        elif self.compensation is CompensationResult.FAILED:
            identity = StepStatus.SUCCEEDED
        else:
            identity = StepStatus.COMPENSATED
        return StepReport(identity, StepStatus.FAILED, StepStatus.SKIPPED)


@dataclass(frozen=True)
class InvalidRequest:
    """The request was rejected before any network call."""

    reason: str

    @property
    def steps(self) -> StepReport:
        return _NOTHING_DONE


RegistrationOutcome = Union[
    Created,
    Conflict,
    IdentityProviderFailure,
    LocalPersistFailure,
    InvalidRequest,
]
