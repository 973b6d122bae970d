from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Sequence, Union

from .content_store import ContentStore
from .domain_provisioning import DomainProvisioner
from .errors import DomainProvisioningFailed, InvalidDomainFormat, ReservedDomain
from .models.website import BUSINESS_FIELDS, Profile, Website, WebsiteStatus
from .slugs import slugify_site_name

logger = logging.getLogger(__name__)

DOMAIN_PATTERN = re.compile(r"^(?:[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?\.)+[a-zA-Z]{2,}$")
DEFAULT_RESERVED_SUFFIXES: Sequence[str] = (
    "lovableproject.com",
    "gettaskly.ai",
    "vercel.app",
    "localhost",
    "local",
    "internal",
)


@dataclass(frozen=True)
class SubdomainTarget:
    """Publish under ``<slug>.<base domain>``, slug derived from the site name."""


@dataclass(frozen=True)
class CustomDomainTarget:
    domain: str


PublishTarget = Union[SubdomainTarget, CustomDomainTarget]


class PublishPhase(str, Enum):
    pending = "PENDING"
    validated = "VALIDATED"
    provisioned = "PROVISIONED"
    committed = "COMMITTED"
    failed = "FAILED"


_TRANSITIONS = {
    PublishPhase.pending: {PublishPhase.validated, PublishPhase.failed},
    PublishPhase.validated: {PublishPhase.provisioned, PublishPhase.failed},
    PublishPhase.provisioned: {PublishPhase.committed, PublishPhase.failed},
    PublishPhase.committed: set(),
    PublishPhase.failed: set(),
}


@dataclass
class PublishAttempt:
    """One run of provision-then-commit for a website.

    The local record is only written in the PROVISIONED to COMMITTED step, so
    an attempt that ends FAILED earlier has written nothing.
    """

    website_id: str
    target: PublishTarget
    phase: PublishPhase = PublishPhase.pending
    slug: str | None = None
    domain: str | None = None
    error: str | None = None
    history: list[PublishPhase] = field(default_factory=lambda: [PublishPhase.pending])
    started_at: datetime = field(default_factory=datetime.utcnow)

    def advance(self, phase: PublishPhase) -> None:
        if phase not in _TRANSITIONS[self.phase]:
            raise RuntimeError(f"Illegal publish transition {self.phase.value} -> {phase.value}")
        self.phase = phase
        self.history.append(phase)

    def fail(self, error: str) -> None:
        self.error = error
        self.advance(PublishPhase.failed)


def validate_custom_domain(domain: str, reserved_suffixes: Sequence[str] = DEFAULT_RESERVED_SUFFIXES) -> str:
    """Normalise a custom domain and check it can be bound; returns the normalised host."""
    normalized = (domain or "").strip().lower()
    if not DOMAIN_PATTERN.match(normalized):
        raise InvalidDomainFormat(domain)
    for suffix in reserved_suffixes:
        suffix = suffix.strip().lower().lstrip(".")
        if suffix and (normalized == suffix or normalized.endswith(f".{suffix}")):
            raise ReservedDomain(normalized, suffix)
    return normalized


def _clean_number_part(value: Any) -> str:
    text = "" if value is None else str(value)
    return re.sub(r"^null", "", text)


def _digits_keeping_plus(value: str) -> str:
    plus = "+" if value.startswith("+") else ""
    result = plus + re.sub(r"[^0-9]", "", value)
    return "" if result == "+" else result


def normalize_full_number(country_code: Any, number: Any, existing_full: Any) -> str:
    """WhatsApp number as ``+`` and digits; rebuilt from country code and number when unusable."""
    full = _digits_keeping_plus(_clean_number_part(existing_full))
    if full:
        return full
    built = _clean_number_part(_clean_number_part(country_code) + _clean_number_part(number))
    return _digits_keeping_plus(built)


def backfill_business_fields(website: Website, profile: Profile | None) -> dict[str, Any]:
    """Business fields missing on the website, taken from the owner's profile."""
    merged: dict[str, Any] = {}
    if profile is not None:
        for name in BUSINESS_FIELDS:
            if not getattr(website, name) and getattr(profile, name):
                merged[name] = getattr(profile, name)
    full = normalize_full_number(
        merged.get("whatsapp_country_code", website.whatsapp_country_code),
        merged.get("whatsapp_number", website.whatsapp_number),
        merged.get("whatsapp_full_number", website.whatsapp_full_number),
    )
    if full and full != website.whatsapp_full_number:
        merged["whatsapp_full_number"] = full
    return merged


def public_address(website: Website, base_domain: str) -> str | None:
    """Public host of a published website: its custom domain or ``<slug>.<base_domain>``."""
    if website.status != WebsiteStatus.published:
        return None
    if website.domain:
        return website.domain
    if website.slug:
        return f"{website.slug}.{base_domain}"
    return None


class PublishWorkflow:
    """Binds websites to a public address and releases them again."""

    def __init__(
        self,
        store: ContentStore,
        provisioner: DomainProvisioner,
        *,
        base_domain: str,
        reserved_suffixes: Sequence[str] = DEFAULT_RESERVED_SUFFIXES,
    ) -> None:
        self._store = store
        self._provisioner = provisioner
        self.base_domain = base_domain
        self.reserved_suffixes = tuple(reserved_suffixes)
        self.last_attempt: PublishAttempt | None = None

    def publish(
        self,
        website_id: str,
        target: PublishTarget,
        *,
        site_title: str | None = None,
        favicon_url: str | None = None,
    ) -> Website:
        """Bind the website to a public address and mark it published.

        A custom domain is registered with the provisioner before anything is
        written; the status change, binding and back-filled business fields
        then go out in a single ``update_website`` call.

        Args:
            website_id: Website to publish.
            target: ``SubdomainTarget`` or ``CustomDomainTarget``.
            site_title: Title for the public pages; defaults to the display name.
            favicon_url: Optional favicon for the public pages.

        Returns:
            The website as persisted.

        Raises:
            InvalidDomainFormat: the custom domain is not a hostname.
            ReservedDomain: the custom domain is under a reserved suffix.
            DomainProvisioningFailed: the provisioner refused the domain;
                nothing was written.
            PersistenceWriteFailed: the final write failed.
        """
        website = self._store.get_website(website_id)
        attempt = PublishAttempt(website_id=website_id, target=target)
        self.last_attempt = attempt

        try:
            if isinstance(target, CustomDomainTarget):
                attempt.domain = validate_custom_domain(target.domain, self.reserved_suffixes)
            else:
                attempt.slug = slugify_site_name(website.name) or slugify_site_name(f"site {website.id[-8:]}")
        except (InvalidDomainFormat, ReservedDomain) as exc:
            attempt.fail(str(exc))
            raise
        attempt.advance(PublishPhase.validated)

        if attempt.domain is not None:
            result = self._provisioner.register_domain(attempt.domain)
            if not result.success:
                error = result.error or "Failed to add domain"
                attempt.fail(error)
                logger.warning(
                    "Domain provisioning failed, website left unchanged",
                    extra={"website_id": website_id, "domain": attempt.domain, "error": error},
                )
                raise DomainProvisioningFailed(attempt.domain, error)
        attempt.advance(PublishPhase.provisioned)

        fields: dict[str, Any] = {
            "status": WebsiteStatus.published,
            "slug": attempt.slug,
            "domain": attempt.domain,
            "site_title": (site_title or "").strip() or website.site_title or website.name,
        }
        if favicon_url and favicon_url.strip():
            fields["favicon_url"] = favicon_url.strip()
        fields.update(backfill_business_fields(website, self._owner_profile(website)))

        try:
            updated = self._store.update_website(website_id, fields)
        except Exception as exc:
            attempt.fail(str(exc))
            raise
        attempt.advance(PublishPhase.committed)
        logger.info(
            "Published website",
            extra={
                "website_id": website_id,
                "slug": attempt.slug,
                "domain": attempt.domain,
                "address": public_address(updated, self.base_domain),
            },
        )

        if website.domain and website.domain != attempt.domain:
            self._release_domain(website_id, website.domain)
        return updated

    def unpublish(self, website_id: str) -> Website:
        """Return the website to draft and clear its binding.

        A bound custom domain is deregistered first; a failure there is logged
        and does not block the unpublish.
        """
        website = self._store.get_website(website_id)
        if website.domain:
            self._release_domain(website_id, website.domain)
        updated = self._store.update_website(
            website_id,
            {"status": WebsiteStatus.draft, "domain": None, "slug": None},
        )
        logger.info("Unpublished website", extra={"website_id": website_id})
        return updated

    def public_address(self, website: Website) -> str | None:
        return public_address(website, self.base_domain)

    def _owner_profile(self, website: Website) -> Profile | None:
        missing = [name for name in BUSINESS_FIELDS if not getattr(website, name)]
        if not missing or not website.owner_id:
            return None
        try:
            return self._store.get_profile(website.owner_id)
        except Exception:
            logger.warning(
                "Profile lookup failed during publish",
                exc_info=True,
                extra={"website_id": website.id, "owner_id": website.owner_id},
            )
            return None

    def _release_domain(self, website_id: str, domain: str) -> None:
        try:
            result = self._provisioner.deregister_domain(domain)
        except Exception:
            logger.error(
                "Error removing domain",
                exc_info=True,
                extra={"website_id": website_id, "domain": domain},
            )
            return
        if not result.success:
            logger.error(
                "Failed to remove domain",
                extra={"website_id": website_id, "domain": domain, "error": result.error},
            )


__all__ = [
    "CustomDomainTarget",
    "DEFAULT_RESERVED_SUFFIXES",
    "DOMAIN_PATTERN",
    "PublishAttempt",
    "PublishPhase",
    "PublishTarget",
    "PublishWorkflow",
    "SubdomainTarget",
    "backfill_business_fields",
    "normalize_full_number",
    "public_address",
    "validate_custom_domain",
]
