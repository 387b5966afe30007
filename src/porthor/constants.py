"""Constants for Porthor."""

__all__ = [
    "ADMIN_GROUP",
    "CONFIG_PATH",
    "LDAP_TIMEOUT",
    "USERNAME_PLACEHOLDER",
]

ADMIN_GROUP = "administrators"
"""Group whose members are classified as administrators.

Matched exactly and case-sensitively against the group names from LDAP.
"""

CONFIG_PATH = "/etc/porthor/porthor.yaml"
"""Default configuration path."""

LDAP_TIMEOUT = 5.0
"""Timeout (in seconds) for LDAP connections and queries."""

USERNAME_PLACEHOLDER = "{{username}}"
"""Placeholder in the user search filter replaced by the escaped username."""
