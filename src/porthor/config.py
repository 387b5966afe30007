"""Configuration for Porthor.

Porthor is configured by a YAML file, normally injected into the container
from a deployment's values file. Secrets may instead be provided via
environment variables, which take precedence over the file. Only the
settings with explicit ``validation_alias`` settings support configuration
via environment variable.
"""

from __future__ import annotations

from ipaddress import IPv4Network, IPv6Network
from pathlib import Path
from typing import Annotated, Any, Self, override

import yaml
from pydantic import (
    AliasChoices,
    Field,
    SecretStr,
    UrlConstraints,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel
from pydantic_core import Url
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)
from safir.logging import LogLevel, configure_logging

from .constants import USERNAME_PLACEHOLDER
from .exceptions import ConfigurationError

LdapDsn = Annotated[
    Url, UrlConstraints(allowed_schemes=["ldap", "ldaps"], host_required=True)
]
"""DSN for connecting to an LDAP server."""

__all__ = [
    "CamelCaseSettings",
    "Config",
    "EnvFirstSettings",
    "LDAPConfig",
    "LdapDsn",
]


class CamelCaseSettings(BaseSettings):
    """Base class for Pydantic settings supporting camel-case.

    This base class also forbids all extra attributes. It should be used as
    the base class (possibly indirectly) for all Porthor configuration
    models that support environment variable overrides.
    """

    model_config = SettingsConfigDict(
        alias_generator=to_camel, extra="forbid", populate_by_name=True
    )


class EnvFirstSettings(CamelCaseSettings):
    """Base class for Pydantic settings with environment overrides.

    Classes that inherit from this base class will prioritize environment
    variables over arguments to the class constructor.
    """

    @override
    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Override the sources of settings.

        Deactivate :file:`.env` and secret file support. Allow environment
        variables to override init parameters, since init parameters come
        from the YAML configuration file and we want environment variables to
        take precedent.
        """
        return (env_settings, init_settings)


class LDAPConfig(EnvFirstSettings):
    """Configuration for the LDAP server.

    Group names are always taken from ``cn``, which holds the common name of
    the group in all known schemas, so this is not configurable.
    """

    url: LdapDsn = Field(
        ...,
        title="LDAP server URL",
        description="URL of LDAP server used to authenticate users",
    )

    bind_dn: str = Field(
        ...,
        title="Administrative bind DN",
        description=(
            "DN of the administrative identity to bind as with simple bind"
            " when searching for users and their groups. This identity is"
            " never used to verify a user's password."
        ),
    )

    password: SecretStr = Field(
        ...,
        title="Administrative bind password",
        description="Password for simple bind as ``bindDn``",
        validation_alias=AliasChoices("PORTHOR_LDAP_PASSWORD", "password"),
    )

    user_base_dn: str = Field(
        ...,
        title="Base DN for user lookups",
        description=(
            "Base DN of the subtree search for the entry of the user who is"
            " authenticating"
        ),
    )

    user_search_attr: str = Field(
        "uid",
        title="Search attribute for users",
        description=(
            "Attribute holding the username. Used to build the default user"
            " search filter if ``userSearchFilter`` is not set."
        ),
    )

    user_search_filter: str | None = Field(
        None,
        title="User search filter",
        description=(
            "Search filter template used to find the user's entry. The"
            f" string ``{USERNAME_PLACEHOLDER}`` is replaced with the"
            " escaped username. If not set, defaults to"
            f" ``(<userSearchAttr>={USERNAME_PLACEHOLDER})``."
        ),
        examples=["(&(objectClass=inetOrgPerson)(uid={{username}}))"],
    )

    user_attrs: list[str] = Field(
        ["uid", "cn", "displayName", "mail"],
        title="User attributes",
        description=(
            "Attributes of the user's entry to return on successful login."
            " Only these attributes are requested from the server."
        ),
    )

    group_base_dn: str = Field(
        ...,
        title="Base DN for group lookups",
        description=(
            "Base DN to use when executing an LDAP search for user groups"
        ),
    )

    group_member_attr: str = Field(
        "uniqueMember",
        title="LDAP attribute holding group members",
        description=(
            "The LDAP attribute in the group tree that contains the DNs of"
            " the members of the group"
        ),
    )

    group_page_size: int | None = Field(
        None,
        title="Page size for group searches",
        description=(
            "If set, search for groups with the LDAP paged results control"
            " using this page size and follow every page. Set this if the"
            " LDAP server limits the number of entries returned by a single"
            " search. If not set, a plain search is used and any server-side"
            " size limit applies to the results."
        ),
        ge=1,
    )

    @field_validator("user_search_filter")
    @classmethod
    def _validate_user_search_filter(cls, v: str | None) -> str | None:
        if v is not None and USERNAME_PLACEHOLDER not in v:
            msg = f"userSearchFilter must contain {USERNAME_PLACEHOLDER}"
            raise ValueError(msg)
        return v

    @property
    def user_filter_template(self) -> str:
        """Search filter template for users, with the username placeholder."""
        if self.user_search_filter:
            return self.user_search_filter
        return f"({self.user_search_attr}={USERNAME_PLACEHOLDER})"


class Config(EnvFirstSettings):
    """Configuration for Porthor."""

    log_level: LogLevel = Field(
        LogLevel.INFO,
        title="Logging level",
        description="Python logging level",
    )

    proxies: list[IPv4Network | IPv6Network] | None = Field(
        None,
        title="Trusted incoming proxy netblocks",
        description=(
            "If this is set to a non-empty list, it will be used as the"
            " trusted list of proxies when parsing the ``X-Forwarded-For``"
            " HTTP header in incoming requests. This allows logging of"
            " accurate client IP addresses for login attempts."
        ),
    )

    slack_alerts: bool = Field(
        False,
        title="Enable Slack alerts",
        description=(
            "Whether to enable Slack alerts. If true, ``slack_webhook`` must"
            " also be set."
        ),
    )

    slack_webhook: SecretStr | None = Field(
        None,
        title="Slack webhook for alerts",
        description="If set, alerts will be posted to this Slack webhook",
        validation_alias=AliasChoices(
            "PORTHOR_SLACK_WEBHOOK", "slackWebhook"
        ),
    )

    ldap: LDAPConfig = Field(
        ...,
        title="LDAP configuration",
        description="Configuration for authenticating users against LDAP",
    )

    @model_validator(mode="after")
    def _validate_slack(self) -> Self:
        if self.slack_alerts and not self.slack_webhook:
            raise ValueError("slackWebhook required if slackAlerts is set")
        return self

    @classmethod
    def from_file(cls, path: Path) -> Self:
        """Construct a Config object from a configuration file.

        Parameters
        ----------
        path
            Path to the configuration file in YAML.

        Returns
        -------
        Config
            The corresponding `Config` object.

        Raises
        ------
        ConfigurationError
            Raised if the file cannot be read or parsed, or if the
            configuration is not valid.
        """
        try:
            with path.open("r") as f:
                data: Any = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            msg = f"Cannot load configuration from {path}: {e!s}"
            raise ConfigurationError(msg) from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path} is not a map")
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            msg = f"Invalid configuration in {path}: {e!s}"
            raise ConfigurationError(msg) from e

    def configure_logging(self) -> None:
        """Configure logging based on the Porthor configuration."""
        configure_logging(name="porthor", log_level=self.log_level)
