"""Constants used in tests."""

__all__ = ["TEST_ADMIN_DN", "TEST_ADMIN_PASSWORD", "TEST_HOSTNAME"]

TEST_ADMIN_DN = "cn=admin,dc=example,dc=com"
"""Administrative bind DN used in the test configurations."""

TEST_ADMIN_PASSWORD = "admin-password"
"""Administrative bind password used in the test configurations."""

TEST_HOSTNAME = "porthor.example.com"
"""The hostname used in ASGI requests to the application."""
