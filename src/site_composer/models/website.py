from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

BUSINESS_FIELDS = (
    "business_name",
    "business_description",
    "whatsapp_country_code",
    "whatsapp_number",
    "whatsapp_full_number",
)


class WebsiteStatus(str, Enum):
    draft = "draft"
    published = "published"


class Website(BaseModel):
    id: str
    owner_id: str | None = None
    name: str
    description: str | None = None
    category: str | None = None
    template_id: str | None = None
    status: WebsiteStatus = WebsiteStatus.draft
    slug: str | None = None
    domain: str | None = None
    site_title: str | None = None
    favicon_url: str | None = None
    business_name: str | None = None
    business_description: str | None = None
    whatsapp_country_code: str | None = None
    whatsapp_number: str | None = None
    whatsapp_full_number: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def is_published(self) -> bool:
        return self.status == WebsiteStatus.published

    @property
    def binding_is_consistent(self) -> bool:
        if self.status == WebsiteStatus.published:
            return bool(self.slug) != bool(self.domain)
        return not self.slug and not self.domain


class Profile(BaseModel):
    """Business details from the owner's account, used to back-fill a site on publish."""

    id: str
    business_name: str | None = None
    business_description: str | None = None
    whatsapp_country_code: str | None = None
    whatsapp_number: str | None = None
    whatsapp_full_number: str | None = None


__all__ = ["BUSINESS_FIELDS", "Profile", "Website", "WebsiteStatus"]
