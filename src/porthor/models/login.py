"""Models for the login route."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from .ldap import UserIdentity

__all__ = [
    "LoginRequest",
    "LoginResponse",
    "LoginResult",
    "LoginUser",
    "Role",
    "is_valid_username",
]


def is_valid_username(username: str) -> bool:
    """Whether a username is free of control characters."""
    return not any(ord(c) < 0x20 or ord(c) == 0x7F for c in username)


class Role(Enum):
    """Role of an authenticated user, determined by group membership."""

    administrator = "administrator"
    user = "user"

    @property
    def message(self) -> str:
        """Human-readable description of a login with this role."""
        return f"Authenticated as {self.value}"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login."""

    role: Role
    """Role of the user."""

    identity: UserIdentity
    """Verified identity of the user."""

    groups: list[str]
    """Names of the user's groups in the order returned by LDAP."""


class LoginRequest(BaseModel):
    """Credentials submitted to the login route."""

    username: str = Field(
        ...,
        title="Username",
        description="Username of the user, matched against LDAP",
        examples=["someuser"],
    )

    password: str = Field(
        ...,
        title="Password",
        description="Password of the user",
        examples=["hunter2"],
    )

    @field_validator("username")
    @classmethod
    def _validate_username(cls, v: str) -> str:
        if not is_valid_username(v):
            raise ValueError("username contains control characters")
        return v


class LoginUser(BaseModel):
    """LDAP entry of the authenticated user."""

    dn: str = Field(
        ...,
        title="Distinguished name",
        examples=["uid=someuser,ou=people,dc=example,dc=com"],
    )

    attributes: dict[str, list[str]] = Field(
        {},
        title="Attributes",
        description="Configured attributes of the user's LDAP entry",
        examples=[{"cn": ["Some User"], "mail": ["someuser@example.com"]}],
    )


class LoginResponse(BaseModel):
    """Response to a successful login."""

    message: str = Field(
        ..., title="Message", examples=["Authenticated as administrator"]
    )

    role: Role = Field(
        ...,
        title="Role",
        description=(
            "``administrator`` if the user is a member of the"
            " ``administrators`` group, otherwise ``user``"
        ),
        examples=[Role.administrator],
    )

    user: LoginUser = Field(..., title="Authenticated user")

    groups: list[str] = Field(
        ...,
        title="Groups",
        description="Names of the groups of the user, in LDAP order",
        examples=[["administrators", "staff"]],
    )

    @classmethod
    def from_result(cls, result: LoginResult) -> LoginResponse:
        """Convert the internal login result to a response."""
        return cls(
            message=result.role.message,
            role=result.role,
            user=LoginUser(
                dn=result.identity.dn,
                attributes=result.identity.attributes,
            ),
            groups=result.groups,
        )
