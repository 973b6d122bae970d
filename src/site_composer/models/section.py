from __future__ import annotations

import copy
from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, ValidationError, field_validator
from pydantic.alias_generators import to_camel


class SectionKind(str, Enum):
    hero = "hero"
    navigation = "navigation"
    about = "about"
    content = "content"
    gallery = "gallery"
    testimonials = "testimonials"
    video = "video"
    features = "features"
    services = "services"
    team = "team"
    stats = "stats"
    timeline = "timeline"
    projects = "projects"
    skills = "skills"
    split = "split"
    contact = "contact"
    forms = "forms"
    cta = "cta"
    footer = "footer"
    custom = "custom"


class SectionCategory(str, Enum):
    header = "header"
    body = "body"
    footer = "footer"


class SectionItem(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)


class GalleryItem(SectionItem):
    image: str = ""
    title: str = ""
    description: str = ""


class ReviewItem(SectionItem):
    name: str = ""
    role: str | None = None
    description: str = ""
    rating: int = Field(default=5, ge=0, le=5)
    image: str | None = None


class FeatureItem(SectionItem):
    title: str
    description: str | list[str] = ""
    icon: str | None = None


class TeamMember(SectionItem):
    name: str
    role: str | None = None
    bio: str | None = None
    image: str | None = None


class StatItem(SectionItem):
    value: str
    label: str = ""
    icon: str | None = None


class TimelineItem(SectionItem):
    title: str
    description: str = ""
    date: str | None = None


class ProjectItem(SectionItem):
    title: str
    description: str = ""
    image: str | None = None
    tags: list[str] = Field(default_factory=list)
    link: str | None = None


class SkillItem(SectionItem):
    name: str
    level: int = Field(default=0, ge=0, le=100)


class NavItem(SectionItem):
    label: str
    href: str


class FormField(SectionItem):
    id: str
    label: str
    type: str = "text"
    placeholder: str | None = None
    required: bool = False


class FooterLink(SectionItem):
    label: str
    href: str


class Section(BaseModel):
    """One typed block of page content.

    Persisted under camelCase keys with the discriminant stored as ``type``.
    Keys the model does not declare are kept as extras so that content written
    by older editors survives a load/save cycle. A stored record that does not
    validate at all is loaded through ``from_record`` as an opaque section and
    written back unchanged.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    _raw: Any = PrivateAttr(default=None)
    _opaque: bool = PrivateAttr(default=False)

    kind: str = Field(alias="type")
    id: str | None = None
    heading: str = ""
    subheading: str | None = None
    content: str | None = None
    background_color: str | None = None
    text_color: str | None = None
    animation: str | None = None
    heading_font_size: str | None = None
    heading_font_family: str | None = None
    subheading_font_size: str | None = None
    subheading_font_family: str | None = None
    content_font_size: str | None = None
    content_font_family: str | None = None
    hidden: bool = False

    image: str | None = None
    logo: str | None = None
    video: str | None = None
    button_text: str | None = None
    button_link: str | None = None
    items: list[dict[str, Any]] | None = None
    fields: list[dict[str, Any]] | None = None
    links: list[dict[str, Any]] | None = None
    company_name: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    html: str | None = None
    css: str | None = None
    external_styles: list[str] | None = None

    @field_validator("heading", mode="before")
    @classmethod
    def _null_heading(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("hidden", mode="before")
    @classmethod
    def _null_hidden(cls, value: Any) -> Any:
        return False if value is None else value

    @classmethod
    def from_record(cls, record: Any) -> "Section":
        """Parse a stored record.

        Args:
            record: One entry of a page's persisted content list.

        Returns:
            The parsed section, or an opaque section holding ``record`` verbatim
            when it does not validate. Opaque sections keep their position,
            render to nothing and are persisted exactly as they were read.
        """
        try:
            return cls.model_validate(record)
        except ValidationError:
            kind = record.get("type") if isinstance(record, Mapping) else None
            section = cls(kind=str(kind or ""))
            section._raw = copy.deepcopy(record)
            section._opaque = True
            return section

    @property
    def is_opaque(self) -> bool:
        return self._opaque

    def with_updates(self, changes: Mapping[str, Any]) -> "Section":
        """Return a validated copy with ``changes`` (python field names) merged in."""
        data = self.model_dump(by_alias=False)
        data.update(changes)
        return type(self).model_validate(data)

    def to_record(self) -> Any:
        if self._opaque:
            return copy.deepcopy(self._raw)
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def field_name(cls, name: str) -> str | None:
        """Resolve a python or persisted (camelCase) key to the declared field name."""
        if name in cls.model_fields:
            return name
        for field_name, info in cls.model_fields.items():
            if info.alias == name:
                return field_name
        return None


__all__ = [
    "FeatureItem",
    "FooterLink",
    "FormField",
    "GalleryItem",
    "NavItem",
    "ProjectItem",
    "Section",
    "SectionCategory",
    "SectionItem",
    "SectionKind",
    "SkillItem",
    "StatItem",
    "TeamMember",
    "ReviewItem",
    "TimelineItem",
]
