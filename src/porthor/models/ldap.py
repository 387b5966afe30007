"""Data models for LDAP."""

from __future__ import annotations

from dataclasses import dataclass, field

__all__ = ["UserIdentity"]


@dataclass(frozen=True)
class UserIdentity:
    """A user whose credentials were verified against LDAP.

    Only produced by a successful bind as the user, so holding one of these
    means the password was accepted.
    """

    dn: str
    """Distinguished name of the user's entry."""

    attributes: dict[str, list[str]] = field(default_factory=dict)
    """Requested attributes of the user's entry, mapped to their values."""
