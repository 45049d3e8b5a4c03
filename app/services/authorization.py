"""Ingestion authorization gate.

Three callers may write standings, each from a different trust context:

- CronJob: the scheduler, presenting ``Authorization: Bearer <CRON_SECRET>``
- Admin: a human, presenting the admin password in ``x-admin-password``
  or the request body
- ExternalAutomation: an out-of-band batch job pushing pre-fetched data,
  presenting ``Authorization: Bearer <STANDINGS_INGEST_SECRET>``

A scheme whose secret is not configured raises ``ConfigurationError``
(service misconfigured); a missing or wrong credential raises
``AuthorizationError`` (caller unauthorized). Callers must not fetch or
write anything before one of these methods returns.
"""

import secrets
from dataclasses import dataclass, field
from enum import Enum

import structlog

from app.errors import AuthorizationError, ConfigurationError

logger = structlog.get_logger(__name__)


class PrincipalKind(Enum):
    """Who is asking to write standings."""

    CRON_JOB = "cron"
    ADMIN = "admin"
    EXTERNAL_AUTOMATION = "ingest"


@dataclass(frozen=True)
class IngestionPrincipal:
    """An authenticated caller."""

    kind: PrincipalKind
    credential: str = field(repr=False)


def _matches(presented: str, expected: str) -> bool:
    return secrets.compare_digest(presented.encode(), expected.encode())


class IngestionGate:
    """Authenticate ingestion callers against the configured secrets."""

    def __init__(self, cron_secret: str, admin_password: str, ingest_secret: str):
        self.cron_secret = cron_secret
        self.admin_password = admin_password
        self.ingest_secret = ingest_secret

    @classmethod
    def from_settings(cls, settings) -> "IngestionGate":
        return cls(
            cron_secret=settings.cron_secret,
            admin_password=settings.admin_password,
            ingest_secret=settings.standings_ingest_secret,
        )

    def authorize_cron(self, authorization: str | None) -> IngestionPrincipal:
        return self._authorize_bearer(
            PrincipalKind.CRON_JOB, authorization, self.cron_secret, "CRON_SECRET"
        )

    def authorize_automation(self, authorization: str | None) -> IngestionPrincipal:
        return self._authorize_bearer(
            PrincipalKind.EXTERNAL_AUTOMATION,
            authorization,
            self.ingest_secret,
            "STANDINGS_INGEST_SECRET",
        )

    def authorize_admin(self, password: str | None) -> IngestionPrincipal:
        if not self.admin_password:
            logger.error("ingestion_misconfigured", kind=PrincipalKind.ADMIN.value)
            raise ConfigurationError("ADMIN_PASSWORD not configured")
        if not password:
            raise AuthorizationError("Unauthorized - Missing admin password")
        if not _matches(password, self.admin_password):
            logger.warning("ingestion_rejected", kind=PrincipalKind.ADMIN.value)
            raise AuthorizationError("Unauthorized - Invalid password")
        return IngestionPrincipal(PrincipalKind.ADMIN, password)

    def authorize_update(
        self, authorization: str | None, password: str | None
    ) -> IngestionPrincipal:
        """
        Classify and authenticate a caller of the update endpoint.

        A bearer Authorization header selects the CronJob scheme; anything
        else is treated as an administrator.
        """
        if authorization:
            return self.authorize_cron(authorization)
        return self.authorize_admin(password)

    def _authorize_bearer(
        self,
        kind: PrincipalKind,
        authorization: str | None,
        secret: str,
        setting_name: str,
    ) -> IngestionPrincipal:
        if not secret:
            logger.error("ingestion_misconfigured", kind=kind.value)
            raise ConfigurationError(f"{setting_name} not configured")
        if not authorization:
            raise AuthorizationError("Unauthorized - Missing Authorization header")
        if not _matches(authorization, f"Bearer {secret}"):
            logger.warning("ingestion_rejected", kind=kind.value)
            raise AuthorizationError(f"Unauthorized - Invalid {setting_name}")
        return IngestionPrincipal(kind, secret)
