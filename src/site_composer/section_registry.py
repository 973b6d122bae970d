from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from .errors import UnsupportedSectionKind
from .models.section import (
    FeatureItem,
    FooterLink,
    FormField,
    GalleryItem,
    NavItem,
    ProjectItem,
    ReviewItem,
    Section,
    SectionCategory,
    SectionItem,
    SectionKind,
    SkillItem,
    StatItem,
    TeamMember,
    TimelineItem,
)


@dataclass(frozen=True)
class SectionDefinition:
    kind: SectionKind
    label: str
    description: str
    icon: str
    category: SectionCategory = SectionCategory.body
    item_model: type[SectionItem] | None = None
    item_collection: str = "items"
    seed_items: Sequence[Mapping[str, Any]] = ()
    seed_fields: Sequence[Mapping[str, Any]] = ()
    extra_defaults: Mapping[str, Any] = field(default_factory=dict)


DEFAULT_STYLE: Mapping[str, str] = {
    "background_color": "bg-background",
    "text_color": "text-foreground",
    "animation": "fade-in",
    "heading_font_size": "text-3xl",
    "heading_font_family": "font-poppins",
    "subheading_font_size": "text-xl",
    "subheading_font_family": "font-poppins",
    "content_font_size": "text-base",
    "content_font_family": "font-poppins",
}

STYLE_ELEMENTS: Sequence[str] = ("heading", "subheading", "content")

FONT_SIZE_TOKENS: Sequence[str] = (
    "text-sm",
    "text-base",
    "text-lg",
    "text-xl",
    "text-2xl",
    "text-3xl",
    "text-4xl",
    "text-5xl",
    "text-6xl",
)

FONT_FAMILY_TOKENS: Sequence[str] = (
    "font-sans",
    "font-serif",
    "font-mono",
    "font-poppins",
    "font-inter",
    "font-playfair",
)

KIND_ALIASES: Mapping[str, str] = {
    "raw-html": SectionKind.custom.value,
    "form": SectionKind.forms.value,
    "text": SectionKind.content.value,
}

CONTACT_FORM_FIELDS: Sequence[Mapping[str, Any]] = (
    {"id": "name", "label": "Name", "type": "text", "placeholder": "Your name", "required": True},
    {"id": "email", "label": "Email", "type": "email", "placeholder": "your@email.com", "required": True},
    {"id": "message", "label": "Message", "type": "textarea", "placeholder": "Your message...", "required": True},
)

FOOTER_LINKS: Sequence[Mapping[str, Any]] = (
    {"label": "Privacy Policy", "href": "?page=privacy-policy"},
    {"label": "Terms of Service", "href": "?page=terms-of-service"},
    {"label": "Refund Policy", "href": "?page=refund-policy"},
)


DEFAULT_SECTIONS: Mapping[SectionKind, SectionDefinition] = {
    SectionKind.hero: SectionDefinition(
        kind=SectionKind.hero,
        label="Hero",
        description="Large header with image background",
        icon="Layout",
        category=SectionCategory.header,
    ),
    SectionKind.navigation: SectionDefinition(
        kind=SectionKind.navigation,
        label="Navigation",
        description="Site menu with logo and links",
        icon="Menu",
        category=SectionCategory.header,
        item_model=NavItem,
        seed_items=(
            {"label": "Home", "href": "/"},
            {"label": "About", "href": "#about"},
            {"label": "Contact", "href": "#contact"},
        ),
    ),
    SectionKind.about: SectionDefinition(
        kind=SectionKind.about,
        label="About",
        description="Business story and mission",
        icon="FileText",
    ),
    SectionKind.content: SectionDefinition(
        kind=SectionKind.content,
        label="Rich Content",
        description="Text-heavy section",
        icon="FileText",
    ),
    SectionKind.gallery: SectionDefinition(
        kind=SectionKind.gallery,
        label="Gallery",
        description="Image grid",
        icon="Image",
        item_model=GalleryItem,
        seed_items=(
            {"image": "https://images.unsplash.com/photo-1498050108023-c5249f4df085", "title": "", "description": ""},
        ),
    ),
    SectionKind.testimonials: SectionDefinition(
        kind=SectionKind.testimonials,
        label="Reviews",
        description="Customer reviews and feedback",
        icon="Star",
        item_model=ReviewItem,
        seed_items=(
            {"name": "Client Name", "role": "Position", "description": "Great service!", "rating": 5, "image": ""},
        ),
    ),
    SectionKind.video: SectionDefinition(
        kind=SectionKind.video,
        label="Video",
        description="Embedded video player",
        icon="Video",
        extra_defaults={"video": ""},
    ),
    SectionKind.features: SectionDefinition(
        kind=SectionKind.features,
        label="Features",
        description="Grid of features with icons",
        icon="Grid",
        item_model=FeatureItem,
        seed_items=({"title": "Feature 1", "description": "Feature description", "icon": "Sparkles"},),
    ),
    SectionKind.services: SectionDefinition(
        kind=SectionKind.services,
        label="Services",
        description="Grid of offered services",
        icon="Grid",
        item_model=FeatureItem,
        seed_items=({"title": "Feature 1", "description": "Feature description", "icon": "Sparkles"},),
    ),
    SectionKind.team: SectionDefinition(
        kind=SectionKind.team,
        label="Team",
        description="Team members with photos",
        icon="Users",
        item_model=TeamMember,
        seed_items=({"name": "Team Member", "role": "Position", "bio": "Bio", "image": ""},),
    ),
    SectionKind.stats: SectionDefinition(
        kind=SectionKind.stats,
        label="Stats",
        description="Number highlights",
        icon="BarChart",
        item_model=StatItem,
        seed_items=({"value": "100+", "label": "Stat Label", "icon": "BarChart3"},),
    ),
    SectionKind.timeline: SectionDefinition(
        kind=SectionKind.timeline,
        label="Timeline",
        description="Experience or education timeline",
        icon="Clock",
        item_model=TimelineItem,
        seed_items=({"title": "Event 1", "description": "Event description", "date": "2024"},),
    ),
    SectionKind.projects: SectionDefinition(
        kind=SectionKind.projects,
        label="Projects",
        description="Portfolio project showcase",
        icon="Briefcase",
        item_model=ProjectItem,
        seed_items=({"title": "Project 1", "description": "Project description", "image": "", "tags": []},),
    ),
    SectionKind.skills: SectionDefinition(
        kind=SectionKind.skills,
        label="Skills",
        description="Skills with progress bars",
        icon="Zap",
        item_model=SkillItem,
        seed_items=({"name": "Skill 1", "level": 80},),
    ),
    SectionKind.split: SectionDefinition(
        kind=SectionKind.split,
        label="Split",
        description="Text on one side, image on the other",
        icon="Split",
    ),
    SectionKind.contact: SectionDefinition(
        kind=SectionKind.contact,
        label="Contact",
        description="Contact details with an enquiry form",
        icon="Mail",
        item_model=FormField,
        item_collection="fields",
        seed_fields=CONTACT_FORM_FIELDS,
    ),
    SectionKind.forms: SectionDefinition(
        kind=SectionKind.forms,
        label="Forms",
        description="Form with input fields",
        icon="ListPlus",
        item_model=FormField,
        item_collection="fields",
        seed_fields=CONTACT_FORM_FIELDS,
    ),
    SectionKind.cta: SectionDefinition(
        kind=SectionKind.cta,
        label="CTA",
        description="Call to action banner",
        icon="Megaphone",
        extra_defaults={"button_text": "Get Started", "button_link": "#"},
    ),
    SectionKind.footer: SectionDefinition(
        kind=SectionKind.footer,
        label="Footer",
        description="Legal links and copyright",
        icon="Code",
        category=SectionCategory.footer,
        item_model=FooterLink,
        item_collection="links",
        extra_defaults={"links": FOOTER_LINKS, "company_name": "Your Company"},
    ),
    SectionKind.custom: SectionDefinition(
        kind=SectionKind.custom,
        label="Custom HTML",
        description="Raw markup and styles",
        icon="Code",
        extra_defaults={"html": "", "css": ""},
    ),
}


def normalize_kind(kind: object) -> str:
    value = kind.value if isinstance(kind, SectionKind) else str(kind)
    return KIND_ALIASES.get(value, value)


def is_supported(kind: object) -> bool:
    try:
        SectionKind(normalize_kind(kind))
    except ValueError:
        return False
    return True


def definition_for(kind: object) -> SectionDefinition:
    try:
        return DEFAULT_SECTIONS[SectionKind(normalize_kind(kind))]
    except (ValueError, KeyError):
        raise UnsupportedSectionKind(kind) from None


def defaults_for(kind: object) -> Section:
    definition = definition_for(kind)
    data: dict[str, Any] = {
        "kind": definition.kind.value,
        "heading": "New Section",
        "subheading": "Add your content here",
        "content": "",
        "button_text": "Submit",
        **DEFAULT_STYLE,
        "items": copy.deepcopy(list(definition.seed_items)),
        "fields": copy.deepcopy(list(definition.seed_fields)),
    }
    data.update(copy.deepcopy(dict(definition.extra_defaults)))
    if "links" in data:
        data["links"] = list(data["links"])
    return Section.model_validate(data)


def category_of(kind: object) -> SectionCategory:
    return definition_for(kind).category


def kinds_in_category(category: SectionCategory) -> list[SectionKind]:
    return [kind for kind, definition in DEFAULT_SECTIONS.items() if definition.category == category]


def validate_section(data: Section | Mapping[str, Any]) -> Section:
    """Boundary validation: supported kind and items shaped for that kind.

    Raises ``UnsupportedSectionKind`` for an unknown kind and ``ValueError``
    (pydantic's ``ValidationError``) for malformed fields or items.
    """
    if isinstance(data, Section):
        section = data
    else:
        raw = dict(data)
        if "kind" not in raw and "type" not in raw:
            raise UnsupportedSectionKind(None)
        section = Section.model_validate(raw)
    kind = normalize_kind(section.kind)
    definition = definition_for(kind)
    if kind != section.kind:
        section = section.with_updates({"kind": kind})
    if definition.item_model is not None:
        for entry in getattr(section, definition.item_collection) or ():
            definition.item_model.model_validate(entry)
    return section


__all__ = [
    "CONTACT_FORM_FIELDS",
    "DEFAULT_SECTIONS",
    "DEFAULT_STYLE",
    "FONT_FAMILY_TOKENS",
    "FONT_SIZE_TOKENS",
    "FOOTER_LINKS",
    "KIND_ALIASES",
    "STYLE_ELEMENTS",
    "SectionDefinition",
    "category_of",
    "defaults_for",
    "definition_for",
    "is_supported",
    "kinds_in_category",
    "normalize_kind",
    "validate_section",
]
