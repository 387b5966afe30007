"""Mock bonsai LDAP API for testing."""

from __future__ import annotations

import asyncio
import re
from collections.abc import AsyncIterator, Iterator
from unittest.mock import patch

import bonsai
from bonsai.utils import escape_filter_exp

from porthor.config import LDAPConfig
from porthor.constants import LDAP_TIMEOUT
from porthor.storage import ldap as ldap_storage

__all__ = [
    "MockLDAP",
    "MockLDAPClient",
    "MockLDAPConnection",
    "MockLDAPEntry",
    "patch_ldap",
]


class MockLDAPEntry(dict[str, list[str]]):
    """Mock of `bonsai.LDAPEntry`, a dictionary with a ``dn`` attribute."""

    def __init__(self, dn: str, attributes: dict[str, list[str]]) -> None:
        super().__init__(attributes)
        self.dn = dn


class MockPagedSearch:
    """Mock of the results of a bonsai asyncio paged search."""

    def __init__(self, ldap: MockLDAP, entries: list[MockLDAPEntry]) -> None:
        self._ldap = ldap
        self._entries = entries

    async def __aiter__(self) -> AsyncIterator[MockLDAPEntry]:
        page_size = self._ldap.last_page_size or len(self._entries)
        for i, entry in enumerate(self._entries):
            if i % page_size == 0:
                self._ldap.pages_fetched += 1
            yield entry


class MockLDAPConnection:
    """Mock of `bonsai.asyncio.AIOLDAPConnection` bound as one DN."""

    def __init__(self, ldap: MockLDAP, bind_dn: str) -> None:
        self._ldap = ldap
        self.bind_dn = bind_dn
        self.closed = False

    def close(self) -> None:
        assert not self.closed, "LDAP connection closed twice"
        self.closed = True
        self._ldap.closed += 1

    async def paged_search(
        self,
        base: str,
        scope: bonsai.LDAPSearchScope,
        filter_exp: str,
        attrlist: list[str],
        timeout: float,
        page_size: int,
    ) -> MockPagedSearch:
        self._ldap.last_page_size = page_size
        entries = await self.search(
            base=base,
            scope=scope,
            filter_exp=filter_exp,
            attrlist=attrlist,
            timeout=timeout,
        )
        return MockPagedSearch(self._ldap, entries)

    async def search(
        self,
        base: str,
        scope: bonsai.LDAPSearchScope,
        filter_exp: str,
        attrlist: list[str],
        timeout: float,
    ) -> list[MockLDAPEntry]:
        assert not self.closed, "Search on closed LDAP connection"
        assert scope == bonsai.LDAPSearchScope.SUB
        assert timeout == LDAP_TIMEOUT
        self._ldap.searches.append((self.bind_dn, base, filter_exp))
        if self._ldap.search_hang:
            self._ldap.search_started.set()
            await asyncio.Event().wait()
        if self._ldap.search_error or base in self._ldap.failing_bases:
            raise bonsai.LDAPError("Protocol error")
        if self._ldap.search_timeout:
            raise bonsai.TimeoutError("Search timed out")
        return self._ldap.find(base, filter_exp, attrlist)


class MockLDAPClient:
    """Mock of `bonsai.LDAPClient`."""

    def __init__(self, ldap: MockLDAP, url: str) -> None:
        self._ldap = ldap
        self.url = url
        self._user: str | None = None
        self._password: str | None = None

    async def connect(
        self, *, is_async: bool, timeout: float
    ) -> MockLDAPConnection:
        assert is_async
        assert timeout == LDAP_TIMEOUT
        assert self._user is not None
        if self._ldap.unreachable:
            raise bonsai.ConnectionError("Can't contact LDAP server")
        if self._ldap.connect_timeout:
            raise asyncio.TimeoutError
        if self._ldap.passwords.get(self._user.lower()) != self._password:
            raise bonsai.AuthenticationError("Invalid credentials")
        self._ldap.opened += 1
        self._ldap.binds.append(self._user)
        return MockLDAPConnection(self._ldap, self._user)

    def set_credentials(
        self, mechanism: str, *, user: str, password: str
    ) -> None:
        assert mechanism == "SIMPLE"
        self._user = user
        self._password = password


class MockLDAP:
    """Mock LDAP server for testing.

    Holds entries and bind passwords, evaluates simple equality and presence
    filters, and counts connections so that tests can check that every
    connection that was opened was closed exactly once.

    Attributes
    ----------
    binds
        DNs of all successful binds, in order.
    closed
        Number of connections closed.
    failing_bases
        Base DNs for which every search fails with a protocol error.
    opened
        Number of connections opened.
    pages_fetched
        Number of pages returned by paged searches.
    search_hang
        If set, searches never complete, so that callers can be cancelled.
        ``search_started`` is set once such a search is pending.
    searches
        Bind DN, base, and filter of every search, in order.
    """

    def __init__(self, config: LDAPConfig) -> None:
        self.config = config
        self.entries: list[MockLDAPEntry] = []
        self.passwords: dict[str, str] = {}
        self.binds: list[str] = []
        self.searches: list[tuple[str, str, str]] = []
        self.opened = 0
        self.closed = 0
        self.pages_fetched = 0
        self.last_page_size: int | None = None
        self.unreachable = False
        self.connect_timeout = False
        self.search_error = False
        self.search_timeout = False
        self.failing_bases: set[str] = set()
        self.search_hang = False
        self.search_started = asyncio.Event()

    def add_bind_password(self, dn: str, password: str) -> None:
        """Allow binds as the given DN with the given password."""
        self.passwords[dn.lower()] = password

    def add_entry(
        self,
        dn: str,
        attributes: dict[str, list[str]],
        *,
        password: str | None = None,
    ) -> None:
        """Add an entry to the directory.

        Parameters
        ----------
        dn
            DN of the entry.
        attributes
            Attributes of the entry.
        password
            If given, allow binds as this entry with this password.
        """
        self.entries.append(MockLDAPEntry(dn, attributes))
        if password is not None:
            self.add_bind_password(dn, password)

    def add_test_group(self, name: str, members: list[str]) -> str:
        """Add a group with the given member DNs.

        Returns
        -------
        str
            DN of the new group.
        """
        dn = f"cn={name},{self.config.group_base_dn}"
        attributes = {"cn": [name], "objectClass": ["groupOfUniqueNames"]}
        if members:
            attributes[self.config.group_member_attr] = members
        self.add_entry(dn, attributes)
        return dn

    def add_test_user(
        self, username: str, password: str, groups: list[str] | None = None
    ) -> str:
        """Add a user, optionally as the only member of new groups.

        Returns
        -------
        str
            DN of the new user.
        """
        dn = f"uid={username},{self.config.user_base_dn}"
        attributes = {
            "uid": [username],
            "cn": [f"Test User {username}"],
            "mail": [f"{username}@example.com"],
            "userPassword": ["{SSHA}c2VjcmV0"],
        }
        self.add_entry(dn, attributes, password=password)
        for group in groups or []:
            self.add_test_group(group, [dn])
        return dn

    def client(self, url: str) -> MockLDAPClient:
        return MockLDAPClient(self, url)

    def find(
        self, base: str, filter_exp: str, attrlist: list[str]
    ) -> list[MockLDAPEntry]:
        """Return the entries under a base that match a simple filter."""
        match = re.match(r"^\(([^=()]+)=([^()]*)\)$", filter_exp)
        assert match, f"{filter_exp} does not match regex of searches"
        attr, value = match.group(1).lower(), match.group(2)
        results = []
        for entry in self.entries:
            if not entry.dn.lower().endswith(base.lower()):
                continue
            values = next(
                (v for k, v in entry.items() if k.lower() == attr), None
            )
            if values is None:
                continue
            escaped = [escape_filter_exp(v) for v in values]
            if value == "*" or value in escaped:
                wanted = {a.lower() for a in attrlist}
                attributes = {
                    k: v for k, v in entry.items() if k.lower() in wanted
                }
                results.append(MockLDAPEntry(entry.dn, attributes))
        return results


def patch_ldap(config: LDAPConfig) -> Iterator[MockLDAP]:
    """Mock the bonsai API for testing.

    The administrative identity from the configuration is allowed to bind.

    Parameters
    ----------
    config
        LDAP configuration used to find the base DNs and administrative
        identity.

    Returns
    -------
    MockLDAP
        The mock LDAP API.
    """
    mock_ldap = MockLDAP(config)
    password = config.password.get_secret_value()
    mock_ldap.add_bind_password(config.bind_dn, password)
    with patch.object(ldap_storage, "LDAPClient") as mock_client:
        mock_client.side_effect = mock_ldap.client
        yield mock_ldap
