"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting
domain services and infrastructure adapters into routes.
"""

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from psycopg_pool import ConnectionPool

from src.adapters.email.console import ConsoleEmailSender
from src.adapters.email.sendgrid import SendGridEmailSender
from src.adapters.identity.keycloak import KeycloakIdentityProvider
from src.adapters.repository.postgres import PostgresUserStore
from src.config.settings import get_settings
from src.domain.exceptions import IdentityProviderError
from src.domain.lifecycle import UserLifecycleService
from src.domain.models import CallerIdentity
from src.domain.notifications import NotificationService
from src.domain.ports import EmailSender
from src.domain.registration import RegistrationOrchestrator

# Module-level singleton - ConsoleEmailSender is stateless
_console_email_sender = ConsoleEmailSender()


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_user_store(request: Request) -> PostgresUserStore:
    """Create user store with connection pool from app state."""
    return PostgresUserStore(get_pool(request))


def get_identity_provider(request: Request) -> KeycloakIdentityProvider:
    """Create identity provider adapter over the shared HTTP client."""
    settings = get_settings()
    client: httpx.Client = request.app.state.idp_client
    return KeycloakIdentityProvider(
        client,
        realm=settings.idp_realm,
        client_id=settings.idp_client_id,
        client_secret=settings.idp_client_secret,
    )


def get_email_sender(request: Request) -> EmailSender:
    """Select the email backend configured in settings."""
    settings = get_settings()
    if settings.email_backend == "sendgrid":
        return SendGridEmailSender(
            request.app.state.email_client,
            api_key=settings.sendgrid_api_key,
            from_address=settings.email_from_address,
            from_name=settings.email_from_name,
        )
    return _console_email_sender


def get_registration_orchestrator(request: Request) -> RegistrationOrchestrator:
    """
    Create registration orchestrator with injected dependencies.

    Wires together the identity provider, user store and email sender.
    """
    settings = get_settings()
    return RegistrationOrchestrator(
        identity_provider=get_identity_provider(request),
        user_store=get_user_store(request),
        email_sender=get_email_sender(request),
        bcrypt_cost=settings.bcrypt_cost,
        temporary_password=settings.idp_temporary_password,
    )


def get_lifecycle_service(request: Request) -> UserLifecycleService:
    """Create lifecycle service with injected dependencies."""
    settings = get_settings()
    return UserLifecycleService(
        identity_provider=get_identity_provider(request),
        user_store=get_user_store(request),
        bcrypt_cost=settings.bcrypt_cost,
        admin_role=settings.admin_role,
    )


def get_notification_service(request: Request) -> NotificationService:
    """Create notification service over the configured email backend."""
    return NotificationService(
        email_sender=get_email_sender(request),
        password_reset_url=get_settings().password_reset_url,
    )


# Bearer token security scheme for OpenAPI documentation.
# auto_error is off so a missing header gets the same 401 as a bad token.
http_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_caller(
    credentials: HTTPAuthorizationCredentials | None = Depends(http_bearer),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> CallerIdentity:
    """
    Resolve the authenticated caller from a Bearer access token.

    The token is checked by introspection at the identity provider; its
    realm roles travel with the caller.
    """
    if credentials is None:
        raise _unauthorized("Missing bearer token")
    try:
        result = service.introspect(credentials.credentials)
    except IdentityProviderError:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Identity provider unavailable",
        ) from None
    if not result.active or not result.subject:
        raise _unauthorized("Invalid or expired token")
    return CallerIdentity(subject=result.subject, username=result.username, roles=result.roles)


def require_admin(
    caller: CallerIdentity = Depends(get_caller),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> CallerIdentity:
    """Authenticated caller holding the configured admin role, else 403."""
    if not service.is_admin(caller):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return caller
