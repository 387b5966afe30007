"""Create Porthor components."""

from __future__ import annotations

import structlog
from safir.slack.webhook import SlackWebhookClient
from structlog.stdlib import BoundLogger

from .config import Config
from .services.credentials import CredentialVerifier
from .services.groups import GroupResolver
from .services.health import HealthCheckService
from .services.login import LoginService
from .storage.ldap import LDAPStorage

__all__ = ["Factory"]


class Factory:
    """Build Porthor components.

    There is no shared per-process state other than the configuration, since
    each LDAP operation opens and closes its own connection, so a factory is
    cheap to create for each request.

    Parameters
    ----------
    config
        Porthor configuration.
    logger
        Logger to use for errors. If not given, the default Porthor logger is
        used.
    """

    def __init__(
        self, config: Config, logger: BoundLogger | None = None
    ) -> None:
        self._config = config
        self._logger = logger or structlog.get_logger("porthor")

    def create_credential_verifier(self) -> CredentialVerifier:
        """Create a verifier for user credentials.

        Returns
        -------
        CredentialVerifier
            Newly-created credential verifier.
        """
        return CredentialVerifier(
            self._config.ldap, self.create_ldap_storage(), self._logger
        )

    def create_group_resolver(self) -> GroupResolver:
        """Create a resolver for user group memberships.

        Returns
        -------
        GroupResolver
            Newly-created group resolver.
        """
        return GroupResolver(
            self._config.ldap, self.create_ldap_storage(), self._logger
        )

    def create_health_check_service(self) -> HealthCheckService:
        """Create a service for performing health checks.

        Returns
        -------
        HealthCheckService
            Newly-created health check service.
        """
        return HealthCheckService(self.create_ldap_storage())

    def create_ldap_storage(self) -> LDAPStorage:
        """Create the LDAP query layer.

        Returns
        -------
        LDAPStorage
            Newly-created LDAP storage.
        """
        return LDAPStorage(self._config.ldap, self._logger)

    def create_login_service(self) -> LoginService:
        """Create the service that logs in users.

        Returns
        -------
        LoginService
            Newly-created login service.
        """
        return LoginService(
            credential_verifier=self.create_credential_verifier(),
            group_resolver=self.create_group_resolver(),
            logger=self._logger,
        )

    def create_slack_client(self) -> SlackWebhookClient | None:
        """Create a client for sending messages to Slack.

        Returns
        -------
        safir.slack.webhook.SlackWebhookClient or None
            Configured Slack client if Slack alerts are enabled, otherwise
            `None`.
        """
        if not self._config.slack_alerts or not self._config.slack_webhook:
            return None
        return SlackWebhookClient(
            self._config.slack_webhook, "Porthor", self._logger
        )

    def set_logger(self, logger: BoundLogger) -> None:
        """Replace the internal logger.

        Used by the context dependency to update the logger for all
        newly-created components when it's rebound with additional context.

        Parameters
        ----------
        logger
            New logger.
        """
        self._logger = logger
