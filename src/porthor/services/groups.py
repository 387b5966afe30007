"""Resolution of a user's group memberships from LDAP."""

from __future__ import annotations

from bonsai.utils import escape_filter_exp
from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..storage.ldap import LDAPStorage

__all__ = ["GroupResolver"]


class GroupResolver:
    """Find the groups that list a user as a member.

    Searches are done bound as the administrative identity, never as the
    user. Failures are raised as `~porthor.exceptions.DirectoryError` and are
    never turned into an empty group list.

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

    async def resolve_groups(self, user_dn: str) -> list[str]:
        """Get the names of the groups of a user.

        Parameters
        ----------
        user_dn
            DN of the user as returned by
            `~porthor.services.credentials.CredentialVerifier`.

        Returns
        -------
        list of str
            The ``cn`` values of every group whose member attribute contains
            the user's DN, in the order the groups were returned by LDAP.
            Groups with several ``cn`` values contribute all of them. The
            list is neither sorted nor deduplicated.

        Raises
        ------
        DirectoryError
            Raised if the administrative bind or the search failed.
        """
        member_attr = self._config.group_member_attr
        search = f"({member_attr}={escape_filter_exp(user_dn)})"
        logger = self._logger.bind(ldap_search=search, user_dn=user_dn)
        async with self._ldap.connect_as_admin() as conn:
            results = await self._ldap.search(
                conn,
                base=self._config.group_base_dn,
                filter_exp=search,
                attrlist=["cn"],
                page_size=self._config.group_page_size,
            )

        groups = []
        for result in results:
            names = result.attributes.get("cn")
            if not names:
                logger.debug("LDAP group has no cn, ignoring", group=result.dn)
                continue
            groups.extend(names)
        logger.debug("LDAP groups found", groups=groups)
        return groups
