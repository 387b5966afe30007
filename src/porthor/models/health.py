"""Models for the health check route."""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field

__all__ = [
    "HealthCheck",
    "HealthStatus",
]


class HealthStatus(str, Enum):
    """Status of the LDAP health check.

    A failure to bind to LDAP is returned as an HTTP error, so the only
    status reported in a successful response is the healthy one.
    """

    HEALTHY = "healthy"


class HealthCheck(BaseModel):
    """Result of binding to LDAP as the administrative identity."""

    status: Annotated[HealthStatus, Field(title="Health status")]
