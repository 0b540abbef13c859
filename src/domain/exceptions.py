"""
Domain exceptions - Semantic error types for the account gateway.

Adapters raise these to report upstream failures without leaking
infrastructure types (httpx / psycopg exceptions) into the domain.
The registration orchestrator converts them into outcome variants;
the lifecycle service lets them propagate to the HTTP layer.
"""


class GatewayError(Exception):
    """Base class for account gateway domain errors."""

    pass


class IdentityProviderError(GatewayError):
    """The identity provider was unreachable, timed out or answered unexpectedly."""

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code


class AuthenticationRejected(IdentityProviderError):
    """The identity provider refused the supplied user credentials or token."""

    pass


class UserStoreError(GatewayError):
    """The local store could not complete a read or write."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail


class UserNotFound(GatewayError):
    """No local user exists with the requested id."""

    pass


class IdentityNotFound(GatewayError):
    """No identity exists provider-side with the requested id."""

    pass


class InvalidPassword(GatewayError):
    """The password cannot be hashed, e.g. it is longer than bcrypt accepts."""

    pass


class AccessDenied(GatewayError):
    """The authenticated caller may not act on the requested resource."""

    pass
