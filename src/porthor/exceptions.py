"""Exceptions for Porthor."""

from __future__ import annotations

from fastapi import status
from safir.fastapi import ClientRequestError
from safir.models import ErrorLocation
from safir.slack.blockkit import SlackException

__all__ = [
    "AuthenticationError",
    "AuthenticationFailedError",
    "ConfigurationError",
    "DirectoryBindError",
    "DirectoryError",
    "DirectoryTimeoutError",
    "DirectoryUnavailableError",
    "InvalidLoginRequestError",
]


class AuthenticationError(Exception):
    """The supplied credentials could not be verified.

    Raised for an unknown user, an ambiguous match, a rejected password, or
    any failure talking to LDAP while authenticating. The underlying cause,
    if any, is chained as ``__cause__`` for logging but is never shown to
    the client, so that a caller cannot distinguish an unknown user from a
    wrong password.
    """


class ConfigurationError(Exception):
    """The Porthor configuration is missing or invalid."""


class DirectoryError(SlackException):
    """An LDAP operation failed for reasons unrelated to user credentials.

    This covers connection failures, rejected binds as the administrative
    identity, timeouts, and protocol errors during a search.
    """


class DirectoryBindError(DirectoryError):
    """The LDAP server rejected the credentials of a bind."""


class DirectoryTimeoutError(DirectoryError):
    """An LDAP operation did not complete within the timeout."""


class AuthenticationFailedError(ClientRequestError):
    """Login failed because the credentials were not accepted."""

    error = "authentication_failed"
    status_code = status.HTTP_401_UNAUTHORIZED


class DirectoryUnavailableError(ClientRequestError):
    """Login failed because LDAP could not be queried."""

    error = "directory_unavailable"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class InvalidLoginRequestError(ClientRequestError):
    """The login request body could not be parsed."""

    error = "invalid_login_request"

    def __init__(self, message: str, field: str | None = None) -> None:
        if field:
            super().__init__(message, ErrorLocation.body, [field])
        else:
            super().__init__(message, ErrorLocation.body)
