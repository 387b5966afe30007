"""Login handler (``/login``)."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from safir.models import ErrorModel
from safir.slack.blockkit import SlackException
from safir.slack.webhook import SlackRouteErrorHandler

from ..dependencies.context import RequestContext, context_dependency
from ..exceptions import (
    AuthenticationError,
    AuthenticationFailedError,
    DirectoryBindError,
    DirectoryError,
    DirectoryUnavailableError,
    InvalidLoginRequestError,
)
from ..models.login import LoginRequest, LoginResponse

router = APIRouter(route_class=SlackRouteErrorHandler)

__all__ = ["login_request_dependency", "router"]

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")
"""Content types parsed as form submissions rather than JSON."""


async def login_request_dependency(request: Request) -> LoginRequest:
    """Parse the login request from either a JSON or a form body.

    Raises
    ------
    InvalidLoginRequestError
        Raised if the body could not be parsed or is missing a field.
    """
    content_type = request.headers.get("Content-Type", "")
    data: Any
    if content_type.split(";")[0].strip().lower() in _FORM_TYPES:
        form = await request.form()
        data = {k: v for k, v in form.items() if isinstance(v, str)}
    else:
        try:
            data = await request.json()
        except ValueError as e:
            msg = "Request body is not valid JSON"
            raise InvalidLoginRequestError(msg) from e
    try:
        return LoginRequest.model_validate(data)
    except ValidationError as e:
        error = e.errors()[0]
        field = str(error["loc"][0]) if error["loc"] else None
        raise InvalidLoginRequestError(error["msg"], field) from e


@router.post(
    "/login",
    description=(
        "Authenticate a user against LDAP with a username and password and"
        " return the user's LDAP entry, groups, and role. The user is an"
        " administrator if they are a member of the ``administrators``"
        " group. The body may be JSON or an HTML form submission."
    ),
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {
                    "schema": LoginRequest.model_json_schema()
                },
                "application/x-www-form-urlencoded": {
                    "schema": LoginRequest.model_json_schema()
                },
            },
            "required": True,
        }
    },
    response_model=LoginResponse,
    responses={
        401: {"description": "Authentication failed", "model": ErrorModel},
        503: {"description": "LDAP unavailable", "model": ErrorModel},
    },
    summary="Log in",
    tags=["user"],
)
async def post_login(
    *,
    login: Annotated[LoginRequest, Depends(login_request_dependency)],
    context: Annotated[RequestContext, Depends(context_dependency)],
) -> LoginResponse:
    context.rebind_logger(user=login.username)
    login_service = context.factory.create_login_service()
    try:
        result = await login_service.login(login.username, login.password)
    except AuthenticationError as e:
        cause = e.__cause__
        if isinstance(cause, DirectoryError) and not isinstance(
            cause, DirectoryBindError
        ):
            context.logger.error(
                "Authentication failed", error=str(e), cause=str(cause)
            )
            await _report_slack(context, cause)
        else:
            context.logger.warning("Authentication failed", error=str(e))
        raise AuthenticationFailedError("Authentication failed") from e
    except DirectoryError as e:
        context.logger.error("Cannot retrieve groups", error=str(e))
        await _report_slack(context, e)
        msg = "Directory service unavailable"
        raise DirectoryUnavailableError(msg) from e

    context.logger.info(
        "Authenticated user",
        user_dn=result.identity.dn,
        role=result.role.value,
        groups=result.groups,
    )
    return LoginResponse.from_result(result)


async def _report_slack(context: RequestContext, exc: BaseException) -> None:
    """Report a directory failure to Slack, if Slack alerts are enabled."""
    slack_client = context.factory.create_slack_client()
    if slack_client and isinstance(exc, SlackException):
        await slack_client.post_exception(exc)
