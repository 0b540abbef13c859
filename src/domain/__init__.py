"""
Domain layer - Pure business logic with zero framework imports.

This package contains the registration orchestration and account
lifecycle logic of the gateway. It defines its own port interfaces for
the identity provider, the user store and the email sender, ensuring
true hexagonal architecture decoupling.
"""

from .exceptions import (
    AccessDenied,
    AuthenticationRejected,
    GatewayError,
    IdentityNotFound,
    IdentityProviderError,
    InvalidPassword,
    UserNotFound,
    UserStoreError,
)
from .lifecycle import UserLifecycleService
from .models import (
    AccountType,
    CallerIdentity,
    CompanyDetails,
    CompanyRecord,
    CompanyUpdate,
    EmailMessage,
    IdentityRecord,
    LocalUserRecord,
    PasswordCredential,
    RegistrationRequest,
    TemplatedEmail,
    TokenIntrospection,
    TokenSet,
    UserUpdate,
)
from .notifications import BulkDelivery, NotificationService
from .outcomes import (
    CompensationResult,
    Conflict,
    Created,
    IdentityProviderFailure,
    InvalidRequest,
    LocalPersistFailure,
    RegistrationOutcome,
    StepReport,
    StepStatus,
)
from .ports import (
    EmailDelivery,
    EmailSender,
    IdentityCreation,
    IdentityDeletion,
    IdentityProvider,
    UserStore,
)
from .registration import RegistrationOrchestrator, RegistrationState

__all__ = [
    "AccessDenied",
    "AccountType",
    "AuthenticationRejected",
    "BulkDelivery",
    "CallerIdentity",
    "CompanyDetails",
    "CompanyRecord",
    "CompanyUpdate",
    "CompensationResult",
    "Conflict",
    "Created",
    "EmailDelivery",
    "EmailMessage",
    "EmailSender",
    "GatewayError",
    "IdentityCreation",
    "IdentityDeletion",
    "IdentityNotFound",
    "IdentityProvider",
    "IdentityProviderError",
    "IdentityProviderFailure",
    "IdentityRecord",
    "InvalidPassword",
    "InvalidRequest",
    "LocalPersistFailure",
    "LocalUserRecord",
    "NotificationService",
    "PasswordCredential",
    "RegistrationOrchestrator",
    "RegistrationOutcome",
    "RegistrationRequest",
    "RegistrationState",
    "StepReport",
    "StepStatus",
    "TemplatedEmail",
    "TokenIntrospection",
    "TokenSet",
    "UserLifecycleService",
    "UserNotFound",
    "UserStore",
    "UserStoreError",
    "UserUpdate",
]
