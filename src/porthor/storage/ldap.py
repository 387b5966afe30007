"""LDAP storage layer for Porthor."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import bonsai
from bonsai import LDAPClient, LDAPSearchScope
from bonsai.asyncio import AIOLDAPConnection
from structlog.stdlib import BoundLogger

from ..config import LDAPConfig
from ..constants import LDAP_TIMEOUT
from ..exceptions import (
    DirectoryBindError,
    DirectoryError,
    DirectoryTimeoutError,
)

LDAPEntryData = dict[str, list[str]]
"""Attributes of an LDAP entry mapped to their string values."""

__all__ = ["LDAPEntryData", "LDAPSearchResult", "LDAPStorage"]


class LDAPSearchResult:
    """One entry returned by an LDAP search.

    Parameters
    ----------
    dn
        Distinguished name of the entry.
    attributes
        Attributes of the entry mapped to their values.
    """

    def __init__(self, dn: str, attributes: LDAPEntryData) -> None:
        self.dn = dn
        self.attributes = attributes

    @classmethod
    def from_entry(
        cls, entry: Mapping[str, Any], attrlist: list[str]
    ) -> LDAPSearchResult:
        """Convert a bonsai entry to a search result.

        LDAP attribute names are case-insensitive, so attributes are stored
        under the spelling used in ``attrlist`` regardless of the case the
        server returned. Binary values that are not valid UTF-8 are dropped,
        since they cannot be represented as strings.

        Parameters
        ----------
        entry
            Entry returned by bonsai.
        attrlist
            Attributes requested in the search.
        """
        names = {a.lower(): a for a in attrlist}
        attributes: LDAPEntryData = {}
        for attr, values in entry.items():
            if attr.lower() == "dn":
                continue
            name = names.get(attr.lower(), attr)
            converted = []
            for value in values:
                if isinstance(value, bytes):
                    try:
                        converted.append(value.decode())
                    except UnicodeDecodeError:
                        continue
                else:
                    converted.append(str(value))
            attributes.setdefault(name, []).extend(converted)
        dn = getattr(entry, "dn", None)
        return cls(str(dn) if dn is not None else "", attributes)


class LDAPStorage:
    """LDAP storage layer.

    Every operation uses its own connection, opened with the credentials for
    that operation and closed when the operation completes, whether or not it
    succeeded. No connections are shared between operations.

    Parameters
    ----------
    config
        Configuration for LDAP.
    logger
        Logger for debug messages and errors.
    """

    def __init__(self, config: LDAPConfig, logger: BoundLogger) -> None:
        self._config = config
        self._url = str(config.url)
        self._logger = logger.bind(ldap_url=self._url)

    @asynccontextmanager
    async def connect(
        self, bind_dn: str, password: str
    ) -> AsyncIterator[AIOLDAPConnection]:
        """Open an LDAP connection bound with simple bind.

        The connection is closed exactly once when the context manager exits,
        including on exceptions and cancellation.

        Parameters
        ----------
        bind_dn
            DN to bind as.
        password
            Password for that DN.

        Yields
        ------
        bonsai.asyncio.AIOLDAPConnection
            The bound connection.

        Raises
        ------
        DirectoryBindError
            Raised if the server rejected the credentials.
        DirectoryError
            Raised if the connection to the server failed.
        DirectoryTimeoutError
            Raised if the connection timed out.
        """
        logger = self._logger.bind(ldap_bind_dn=bind_dn)
        client = LDAPClient(self._url)
        client.set_credentials("SIMPLE", user=bind_dn, password=password)
        try:
            logger.debug("Connecting to LDAP")
            conn = await client.connect(is_async=True, timeout=LDAP_TIMEOUT)
        except bonsai.AuthenticationError as e:
            logger.debug("LDAP bind rejected", error=str(e))
            raise DirectoryBindError(f"LDAP bind as {bind_dn} failed") from e
        except (bonsai.TimeoutError, asyncio.TimeoutError) as e:
            msg = f"LDAP connection timed out after {LDAP_TIMEOUT}s"
            raise DirectoryTimeoutError(msg) from e
        except bonsai.LDAPError as e:
            raise DirectoryError(f"Cannot connect to LDAP: {e!s}") from e
        try:
            yield conn
        finally:
            conn.close()
            logger.debug("Closed LDAP connection")

    @asynccontextmanager
    async def connect_as_admin(self) -> AsyncIterator[AIOLDAPConnection]:
        """Open an LDAP connection bound as the administrative identity.

        A rejected bind is a configuration or server problem rather than a
        problem with any user's credentials, so it is reported as a plain
        `~porthor.exceptions.DirectoryError` rather than as a
        `~porthor.exceptions.DirectoryBindError`.

        Yields
        ------
        bonsai.asyncio.AIOLDAPConnection
            The bound connection.

        Raises
        ------
        DirectoryError
            Raised if the bind failed or the connection to the server failed.
        DirectoryTimeoutError
            Raised if the connection timed out.
        """
        bind_dn = self._config.bind_dn
        password = self._config.password.get_secret_value()
        try:
            async with self.connect(bind_dn, password) as conn:
                yield conn
        except DirectoryBindError as e:
            msg = f"Administrative bind to LDAP as {bind_dn} rejected"
            self._logger.error(msg)
            raise DirectoryError(msg) from e

    async def search(
        self,
        conn: AIOLDAPConnection,
        *,
        base: str,
        filter_exp: str,
        attrlist: list[str],
        page_size: int | None = None,
    ) -> list[LDAPSearchResult]:
        """Perform a subtree search and return all results.

        Parameters
        ----------
        conn
            Bound connection on which to search.
        base
            Base DN of the search.
        filter_exp
            Search filter. Any untrusted values must already be escaped.
        attrlist
            List of attributes to retrieve.
        page_size
            If set, use a paged search with this page size and retrieve every
            page before returning.

        Returns
        -------
        list of LDAPSearchResult
            Entries in the order returned by the server.

        Raises
        ------
        DirectoryError
            Raised if the search failed. No partial results are returned.
        DirectoryTimeoutError
            Raised if the search timed out.
        """
        logger = self._logger.bind(
            ldap_attrs=attrlist, ldap_base=base, ldap_search=filter_exp
        )
        scope = LDAPSearchScope.SUB
        try:
            logger.debug("Querying LDAP", ldap_page_size=page_size)
            if page_size:
                entries = []
                pages = await conn.paged_search(
                    base=base,
                    scope=scope,
                    filter_exp=filter_exp,
                    attrlist=attrlist,
                    timeout=LDAP_TIMEOUT,
                    page_size=page_size,
                )
                async for entry in pages:
                    entries.append(entry)
            else:
                entries = await conn.search(
                    base=base,
                    scope=scope,
                    filter_exp=filter_exp,
                    attrlist=attrlist,
                    timeout=LDAP_TIMEOUT,
                )
        except (bonsai.TimeoutError, asyncio.TimeoutError) as e:
            msg = f"LDAP query timed out after {LDAP_TIMEOUT}s"
            raise DirectoryTimeoutError(msg) from e
        except bonsai.LDAPError as e:
            raise DirectoryError(f"Error querying LDAP: {e!s}") from e
        results = [LDAPSearchResult.from_entry(e, attrlist) for e in entries]
        logger.debug("LDAP search complete", count=len(results))
        return results
