"""Verification of user credentials against LDAP."""

from __future__ import annotations

from bonsai.utils import escape_filter_exp
from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..constants import USERNAME_PLACEHOLDER
from ..exceptions import AuthenticationError, DirectoryError
from ..models.ldap import UserIdentity
from ..models.login import is_valid_username
from ..storage.ldap import LDAPStorage

__all__ = ["CredentialVerifier"]


class CredentialVerifier:
    """Verify a username and password with an LDAP search and bind.

    The user's entry is located by a search bound as the administrative
    identity, and then the password is checked by binding as the DN of that
    entry on a separate connection. Every failure, including failures to talk
    to LDAP, is reported as `~porthor.exceptions.AuthenticationError` so that
    callers cannot tell why a login was rejected. The underlying exception is
    chained for logging.

    Parameters
    ----------
    config
        LDAP configuration.
    ldap
        The underlying LDAP query layer.
    logger
        Logger to use.
    """

    def __init__(
        self, config: LDAPConfig, ldap: LDAPStorage, logger: BoundLogger
    ) -> None:
        self._config = config
        self._ldap = ldap
        self._logger = logger

    async def authenticate(self, username: str, password: str) -> UserIdentity:
        """Verify credentials and return the identity of the user.

        A single attempt is made. Retries, if wanted, are up to the caller.

        Parameters
        ----------
        username
            Username as supplied by the user. This is untrusted input and is
            escaped before use in the search filter.
        password
            Password as supplied by the user.

        Returns
        -------
        UserIdentity
            DN and configured attributes of the user's entry.

        Raises
        ------
        AuthenticationError
            Raised if the credentials could not be verified for any reason.
        """
        if not username:
            raise AuthenticationError("No username given")

        # A simple bind with an empty password is an unauthenticated bind,
        # which LDAP servers accept for any DN.
        if not password:
            raise AuthenticationError("No password given")

        # Control characters never appear in a valid filter value.
        if not is_valid_username(username):
            raise AuthenticationError("Username contains control characters")

        search = self.build_user_filter(username)
        logger = self._logger.bind(ldap_search=search, user=username)
        try:
            async with self._ldap.connect_as_admin() as conn:
                results = await self._ldap.search(
                    conn,
                    base=self._config.user_base_dn,
                    filter_exp=search,
                    attrlist=self._config.user_attrs,
                )
            if not results:
                raise AuthenticationError(f"User {username} not found")
            if len(results) > 1:
                msg = f"Multiple LDAP entries found for {username}"
                raise AuthenticationError(msg)
            entry = results[0]
            if not entry.dn:
                msg = f"LDAP entry for {username} has no DN"
                raise AuthenticationError(msg)
            logger = logger.bind(user_dn=entry.dn)
            async with self._ldap.connect(entry.dn, password):
                logger.debug("Bound to LDAP as user")
        except DirectoryError as e:
            logger.debug("LDAP authentication failed", error=str(e))
            raise AuthenticationError(f"Cannot authenticate {username}") from e

        return UserIdentity(dn=entry.dn, attributes=entry.attributes)

    def build_user_filter(self, username: str) -> str:
        """Construct the search filter for a user's entry.

        Parameters
        ----------
        username
            Untrusted username.

        Returns
        -------
        str
            Search filter with the escaped username substituted.
        """
        escaped = escape_filter_exp(username)
        template = self._config.user_filter_template
        return template.replace(USERNAME_PLACEHOLDER, escaped)
