"""
API v1 routes.

Defines REST endpoints for the account gateway: identity-first registration,
token operations and local profile management.

Every route except registration, login, token refresh and introspection
requires a bearer access token; administrative routes also require the
configured admin role.

Routes are plain ``def`` functions: every handler makes blocking network
calls, which FastAPI runs in its worker threadpool.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse

from src.api.dependencies import (
    get_caller,
    get_lifecycle_service,
    get_registration_orchestrator,
    require_admin,
)
from src.api.models import (
    AvailabilityResponse,
    ErrorResponse,
    IntrospectRequest,
    IntrospectResponse,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    RegisterResponse,
    RegistrationErrorResponse,
    StepsResponse,
    TokenResponse,
    UpdateUserRequest,
    UserResponse,
)
from src.config.settings import get_settings
from src.domain.exceptions import (
    AccessDenied,
    AuthenticationRejected,
    IdentityNotFound,
    IdentityProviderError,
    InvalidPassword,
    UserNotFound,
    UserStoreError,
)
from src.domain.lifecycle import UserLifecycleService
from src.domain.models import CallerIdentity
from src.domain.outcomes import (
    Conflict,
    Created,
    IdentityProviderFailure,
    InvalidRequest,
    LocalPersistFailure,
    RegistrationOutcome,
    StepReport,
)
from src.domain.registration import RegistrationOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["v1"])


def _steps(report: StepReport) -> StepsResponse:
    return StepsResponse(
        identity=report.identity.value,
        local_persist=report.local_persist.value,
        email=report.email.value,
    )


def _registration_error(outcome: RegistrationOutcome) -> JSONResponse:
    """Map a non-Created outcome to status code and safe body."""
    expose = get_settings().expose_error_details
    if isinstance(outcome, InvalidRequest):
        status_code, code, message, detail = (
            status.HTTP_400_BAD_REQUEST,
            "invalid_request",
            outcome.reason,
            None,
        )
    elif isinstance(outcome, Conflict):
        status_code, code, message, detail = (
            status.HTTP_409_CONFLICT,
            "conflict",
            outcome.reason,
            None,
        )
    elif isinstance(outcome, IdentityProviderFailure):
        status_code, code, message, detail = (
            status.HTTP_502_BAD_GATEWAY,
            "identity_provider_failure",
            "Identity provider registration failed",
            outcome.detail,
        )
    else:
        status_code, code, message, detail = (
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "local_persist_failure",
            "Registration failed while saving the user",
            outcome.detail,
        )

    body = RegistrationErrorResponse(
        code=code,
        message=message,
        steps=_steps(outcome.steps),
        detail=detail if expose else None,
    )
    if isinstance(outcome, LocalPersistFailure):
        body.compensation = outcome.compensation.value
        body.requires_manual_cleanup = outcome.requires_manual_cleanup
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _upstream_error(exc: Exception) -> HTTPException:
    """Translate lifecycle exceptions into HTTP errors with safe messages."""
    if isinstance(exc, AuthenticationRejected):
        return HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials or token"
        )
    if isinstance(exc, IdentityProviderError):
        return HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Identity provider unavailable"
        )
    if isinstance(exc, (UserNotFound, IdentityNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if isinstance(exc, AccessDenied):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed to access this user"
        )
    if isinstance(exc, InvalidPassword):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, UserStoreError) and exc.detail == "unique violation":
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already in use")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="User store unavailable"
    )


_LIFECYCLE_ERRORS = (
    IdentityProviderError,
    UserNotFound,
    IdentityNotFound,
    AccessDenied,
    InvalidPassword,
    UserStoreError,
)


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": RegistrationErrorResponse, "description": "Email or username missing"},
        409: {"model": RegistrationErrorResponse, "description": "Email or identity already exists"},
        422: {"description": "Validation error"},
        500: {"model": RegistrationErrorResponse, "description": "Local persist failed"},
        502: {"model": RegistrationErrorResponse, "description": "Identity provider failed"},
    },
    summary="Register a new user",
    description="Create the identity in the identity provider, then the local "
    "user record, then send a welcome email. If the local record cannot be "
    "saved the identity is deleted again.",
)
def register(
    request_data: RegisterRequest,
    orchestrator: RegistrationOrchestrator = Depends(get_registration_orchestrator),
) -> RegisterResponse | JSONResponse:
    """
    Register a new user (identity-first).

    - **username**, **email**, **password**: required
    - **company**: optional company record for business accounts
    """
    outcome = orchestrator.register_identity_first(request_data.to_domain())
    if not isinstance(outcome, Created):
        return _registration_error(outcome)
    return RegisterResponse(
        message="User registered successfully",
        user=UserResponse.from_domain(outcome.user),
        email_sent=outcome.email_sent,
        steps=_steps(outcome.steps),
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Log in with username and password",
)
def login(
    request_data: LoginRequest,
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> TokenResponse:
    try:
        tokens = service.login(request_data.username, request_data.password)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    return TokenResponse.from_domain(tokens)


@router.post(
    "/token/refresh",
    response_model=TokenResponse,
    responses={401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Refresh an access token",
)
def refresh_token(
    request_data: RefreshRequest,
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> TokenResponse:
    try:
        tokens = service.refresh(request_data.refresh_token)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    return TokenResponse.from_domain(tokens)


@router.post(
    "/token/introspect",
    response_model=IntrospectResponse,
    responses={502: {"model": ErrorResponse}},
    summary="Introspect a token",
)
def introspect_token(
    request_data: IntrospectRequest,
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> IntrospectResponse:
    try:
        result = service.introspect(request_data.token)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    return IntrospectResponse.from_domain(result)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="End the session bound to a refresh token",
)
def logout(
    request_data: RefreshRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> Response:
    try:
        service.logout(request_data.refresh_token)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    logger.info("Session ended for %s", caller.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/admin-token",
    response_model=TokenResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Issue an administrative token (admin only)",
)
def admin_token(
    caller: CallerIdentity = Depends(require_admin),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> TokenResponse:
    try:
        tokens = service.admin_token()
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    logger.info("Admin token issued to %s", caller.username)
    return TokenResponse.from_domain(tokens)


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Check whether a username or email is already registered",
)
def availability(
    username: str | None = Query(None, min_length=1, max_length=50),
    email: str | None = Query(None, min_length=1, max_length=255),
    caller: CallerIdentity = Depends(get_caller),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> AvailabilityResponse:
    if username is None and email is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Give a username or an email"
        )
    try:
        return AvailabilityResponse(
            username_taken=service.is_username_taken(username) if username is not None else None,
            email_taken=service.is_email_taken(email) if email is not None else None,
        )
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None


@router.delete(
    "/me",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete the caller's own identity",
)
def delete_me(
    caller: CallerIdentity = Depends(get_caller),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> Response:
    try:
        service.delete_caller(caller)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/identity/{provider_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Delete an identity by its identity-provider id (admin only)",
)
def delete_identity(
    provider_id: str,
    caller: CallerIdentity = Depends(require_admin),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> Response:
    try:
        service.delete_identity(provider_id)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    logger.info("Identity %s deleted by %s", provider_id, caller.username)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Get a local user (own record, or any record for admins)",
)
def get_user(
    user_id: int,
    caller: CallerIdentity = Depends(get_caller),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> UserResponse:
    try:
        user = service.get_user(user_id, caller)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    return UserResponse.from_domain(user)


@router.put(
    "/{user_id}",
    response_model=UserResponse,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
    },
    summary="Update a local user (own record, or any record for admins)",
)
def update_user(
    user_id: int,
    request_data: UpdateUserRequest,
    caller: CallerIdentity = Depends(get_caller),
    service: UserLifecycleService = Depends(get_lifecycle_service),
) -> UserResponse:
    try:
        user = service.update_user(user_id, request_data.to_domain(), caller)
    except _LIFECYCLE_ERRORS as exc:
        raise _upstream_error(exc) from None
    return UserResponse.from_domain(user)
