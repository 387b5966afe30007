"""Health check for the Porthor service."""

from __future__ import annotations

from ..storage.ldap import LDAPStorage

__all__ = ["HealthCheckService"]


class HealthCheckService:
    """Check the health of the Porthor service.

    Intended to be invoked via a Kubernetes liveness check. The only external
    dependency is LDAP, so this checks that the administrative identity can
    still bind.

    Parameters
    ----------
    ldap
        The underlying LDAP query layer.
    """

    def __init__(self, ldap: LDAPStorage) -> None:
        self._ldap = ldap

    async def check(self) -> None:
        """Bind to LDAP as the administrative identity and unbind.

        Raises
        ------
        DirectoryError
            Raised if the bind failed.
        """
        async with self._ldap.connect_as_admin():
            pass
