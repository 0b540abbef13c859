"""
API v1 email routes.

Administrative endpoints for sending email through the configured email
backend. Every route requires a bearer token carrying the admin role.
Delivery failures are reported in the body with status 502; upstream
detail is included only when error details are exposed.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from src.api.dependencies import get_notification_service, require_admin
from src.api.models import (
    BulkDeliveryResponse,
    BulkEmailRequest,
    EmailDeliveryResponse,
    ErrorResponse,
    PasswordResetEmailRequest,
    SendEmailRequest,
    TemplateEmailRequest,
    WelcomeEmailRequest,
)
from src.config.settings import get_settings
from src.domain.models import CallerIdentity
from src.domain.notifications import NotificationService
from src.domain.ports import EmailDelivery

router = APIRouter(
    prefix="/email",
    tags=["v1"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

_DELIVERY_RESPONSES = {502: {"model": EmailDeliveryResponse, "description": "Email not sent"}}


def _delivery_response(delivery: EmailDelivery) -> EmailDeliveryResponse | JSONResponse:
    body = EmailDeliveryResponse.from_domain(delivery)
    if not get_settings().expose_error_details:
        body.detail = None
    if delivery.sent:
        return body
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content=body.model_dump())


@router.post(
    "/send",
    response_model=EmailDeliveryResponse,
    responses=_DELIVERY_RESPONSES,
    summary="Send an email with raw text and optional HTML content",
)
def send_email(
    request_data: SendEmailRequest,
    caller: CallerIdentity = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
) -> EmailDeliveryResponse | JSONResponse:
    return _delivery_response(service.send(request_data.to_domain()))


@router.post(
    "/template",
    response_model=EmailDeliveryResponse,
    responses=_DELIVERY_RESPONSES,
    summary="Send an email rendered from a provider-side template",
)
def send_template_email(
    request_data: TemplateEmailRequest,
    caller: CallerIdentity = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
) -> EmailDeliveryResponse | JSONResponse:
    return _delivery_response(service.send_template(request_data.to_domain()))


@router.post(
    "/welcome",
    response_model=EmailDeliveryResponse,
    responses=_DELIVERY_RESPONSES,
    summary="Resend the welcome email",
)
def send_welcome_email(
    request_data: WelcomeEmailRequest,
    caller: CallerIdentity = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
) -> EmailDeliveryResponse | JSONResponse:
    return _delivery_response(service.send_welcome(request_data.email, request_data.name))


@router.post(
    "/password-reset",
    response_model=EmailDeliveryResponse,
    responses=_DELIVERY_RESPONSES,
    summary="Send a password reset link",
)
def send_password_reset_email(
    request_data: PasswordResetEmailRequest,
    caller: CallerIdentity = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
) -> EmailDeliveryResponse | JSONResponse:
    return _delivery_response(
        service.send_password_reset(request_data.email, request_data.token)
    )


@router.post(
    "/bulk",
    response_model=BulkDeliveryResponse,
    summary="Send several emails; failures are listed, not raised",
)
def send_bulk_email(
    request_data: BulkEmailRequest,
    caller: CallerIdentity = Depends(require_admin),
    service: NotificationService = Depends(get_notification_service),
) -> BulkDeliveryResponse:
    result = service.send_bulk(email.to_domain() for email in request_data.emails)
    return BulkDeliveryResponse.from_domain(result)
