from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

import requests
from google.cloud import secretmanager

logger = logging.getLogger(__name__)

VERCEL_API_URL = "https://api.vercel.com"
DOMAIN_IN_USE_MESSAGE = (
    "This domain is already connected to another Vercel project. "
    "Please remove it from the other project first."
)
# Error codes Vercel returns when another project owns the domain.
DOMAIN_IN_USE_CODES = frozenset({"domain_already_in_use", "forbidden"})
# The domain is already attached to this project; registering again is a no-op.
ALREADY_REGISTERED_CODES = frozenset({"domain_already_exists"})


@dataclass(frozen=True)
class ProvisioningResult:
    success: bool
    error: str | None = None


class DomainProvisioner(Protocol):
    """External service that routes a custom domain to the hosting project.

    Both calls must be idempotent under retry.
    """

    def register_domain(self, domain: str) -> ProvisioningResult:
        ...

    def deregister_domain(self, domain: str) -> ProvisioningResult:
        ...


class InMemoryDomainProvisioner:
    """Records registrations locally; used in dev."""

    def __init__(self) -> None:
        self._domains: set[str] = set()
        self._lock = threading.Lock()

    def register_domain(self, domain: str) -> ProvisioningResult:
        with self._lock:
            self._domains.add(domain)
        return ProvisioningResult(success=True)

    def deregister_domain(self, domain: str) -> ProvisioningResult:
        with self._lock:
            self._domains.discard(domain)
        return ProvisioningResult(success=True)

    def is_registered(self, domain: str) -> bool:
        with self._lock:
            return domain in self._domains


class VercelDomainProvisioner:
    """Attaches custom domains to the Vercel project that serves published sites."""

    def __init__(
        self,
        *,
        project_id: str,
        token: str | None = None,
        gcp_project_id: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.project_id = project_id
        self.gcp_project_id = gcp_project_id
        self.timeout = timeout
        if not token and gcp_project_id:
            token = self._get_secret("vercel-token")
        if not token:
            raise ValueError("Vercel credentials not configured")
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {token}"})

    def register_domain(self, domain: str) -> ProvisioningResult:
        url = f"{VERCEL_API_URL}/v10/projects/{self.project_id}/domains"
        logger.info("Adding domain to Vercel project", extra={"domain": domain, "vercel_project": self.project_id})
        try:
            response = self._session.post(url, json={"name": domain}, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Vercel API request failed", exc_info=True, extra={"domain": domain})
            return ProvisioningResult(success=False, error=f"Failed to add domain to Vercel: {exc}")

        if response.ok:
            return ProvisioningResult(success=True)

        error = _error_body(response)
        code = error.get("code")
        if code in ALREADY_REGISTERED_CODES:
            return ProvisioningResult(success=True)
        logger.warning(
            "Vercel rejected domain",
            extra={"domain": domain, "status_code": response.status_code, "code": code},
        )
        if code in DOMAIN_IN_USE_CODES:
            return ProvisioningResult(success=False, error=DOMAIN_IN_USE_MESSAGE)
        return ProvisioningResult(success=False, error=error.get("message") or "Failed to add domain to Vercel")

    def deregister_domain(self, domain: str) -> ProvisioningResult:
        url = f"{VERCEL_API_URL}/v9/projects/{self.project_id}/domains/{domain}"
        try:
            response = self._session.delete(url, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.error("Vercel API request failed", exc_info=True, extra={"domain": domain})
            return ProvisioningResult(success=False, error=f"Failed to remove domain from Vercel: {exc}")

        # Already gone counts as removed.
        if response.ok or response.status_code == 404:
            logger.info("Removed domain from Vercel project", extra={"domain": domain})
            return ProvisioningResult(success=True)
        error = _error_body(response)
        return ProvisioningResult(success=False, error=error.get("message") or "Failed to remove domain from Vercel")

    def _get_secret(self, secret_id: str) -> str | None:
        """Fetch secret from Secret Manager; None when unavailable."""
        try:
            client = secretmanager.SecretManagerServiceClient()
            name = f"projects/{self.gcp_project_id}/secrets/{secret_id}/versions/latest"
            response = client.access_secret_version(name=name)
            return response.payload.data.decode("UTF-8")
        except Exception as exc:
            logger.warning(
                "Failed to fetch secret",
                extra={"secret_id": secret_id, "error": str(exc)},
            )
            return None


def _error_body(response: requests.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


__all__ = [
    "DOMAIN_IN_USE_MESSAGE",
    "DomainProvisioner",
    "InMemoryDomainProvisioner",
    "ProvisioningResult",
    "VercelDomainProvisioner",
]
