from __future__ import annotations

import re

from .models.section import Section

_WHITESPACE = re.compile(r"\s+")
_NON_SLUG = re.compile(r"[^a-z0-9-]")
_NON_ALNUM_RUN = re.compile(r"[^a-z0-9]+")


def slugify_site_name(name: str) -> str:
    """Subdomain label for a site: lower-case, whitespace to hyphens, anything else dropped."""
    slug = _WHITESPACE.sub("-", name.lower())
    return _NON_SLUG.sub("", slug)


def anchor_from_heading(heading: str | None) -> str:
    if not heading:
        return ""
    return _NON_ALNUM_RUN.sub("-", heading.lower()).strip("-")


def section_anchor_id(section: Section) -> str:
    # Navigation items link to these ids, so editor and public output must agree.
    return anchor_from_heading(section.heading) or section.kind


def page_path_key(title: str | None) -> str:
    return _WHITESPACE.sub("-", (title or "").lower())


__all__ = ["anchor_from_heading", "page_path_key", "section_anchor_id", "slugify_site_name"]
