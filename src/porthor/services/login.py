"""Login combining authentication, group lookup, and role classification."""

from __future__ import annotations

from collections.abc import Iterable

from structlog.stdlib import BoundLogger

from ..constants import ADMIN_GROUP
from ..models.login import LoginResult, Role
from .credentials import CredentialVerifier
from .groups import GroupResolver

__all__ = ["LoginService", "classify"]


def classify(groups: Iterable[str]) -> Role:
    """Determine the role of a user from their group names.

    Parameters
    ----------
    groups
        Names of the user's groups.

    Returns
    -------
    Role
        `Role.administrator` if one of the groups is exactly
        ``administrators`` (case-sensitive), otherwise `Role.user`.
    """
    if ADMIN_GROUP in groups:
        return Role.administrator
    return Role.user


class LoginService:
    """Log in a user with a username and password.

    Parameters
    ----------
    credential_verifier
        Verifies the user's credentials.
    group_resolver
        Looks up the user's groups.
    logger
        Logger to use.
    """

    def __init__(
        self,
        *,
        credential_verifier: CredentialVerifier,
        group_resolver: GroupResolver,
        logger: BoundLogger,
    ) -> None:
        self._verifier = credential_verifier
        self._groups = group_resolver
        self._logger = logger

    async def login(self, username: str, password: str) -> LoginResult:
        """Authenticate a user and determine their role.

        Groups are only looked up after the credentials have been verified.

        Parameters
        ----------
        username
            Username supplied by the user.
        password
            Password supplied by the user.

        Returns
        -------
        LoginResult
            Identity, groups, and role of the user.

        Raises
        ------
        AuthenticationError
            Raised if the credentials could not be verified.
        DirectoryError
            Raised if the user's groups could not be retrieved.
        """
        identity = await self._verifier.authenticate(username, password)
        groups = await self._groups.resolve_groups(identity.dn)
        role = classify(groups)
        self._logger.debug(
            "Classified user", user_dn=identity.dn, role=role.value
        )
        return LoginResult(role=role, identity=identity, groups=groups)
