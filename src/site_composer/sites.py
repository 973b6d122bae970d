from __future__ import annotations

import logging
from typing import Sequence

from .content_store import ContentStore
from .errors import PageNotFound
from .models.page import Page, PageDraft, Template, TemplateFilter
from .models.section import Section
from .models.website import Website, WebsiteStatus
from .ordering import new_section_id
from .slugs import slugify_site_name

logger = logging.getLogger(__name__)

BLANK_SITE_NAME = "Untitled Website"
BLANK_SITE_DESCRIPTION = "A new website"


def instantiate_content(content: Sequence[Section]) -> list[Section]:
    """Deep copy of template or generated sections; sections without an id get one."""
    return [section.model_copy(deep=True, update={"id": section.id or new_section_id()}) for section in content]


class SiteManager:
    """Website and page lifecycle: templates, blank sites, pages, deletion."""

    def __init__(self, store: ContentStore) -> None:
        self._store = store

    def list_templates(self, template_filter: TemplateFilter | None = None) -> list[Template]:
        return self._store.list_templates(template_filter)

    def use_template(self, owner_id: str | None, template_id: str) -> tuple[Website, Page]:
        template = self._store.get_template(template_id)
        website = self._store.create_website(
            owner_id=owner_id,
            name=template.name,
            description=template.description,
            category=template.category,
            template_id=template.id,
            status=WebsiteStatus.draft,
        )
        page = self._create_homepage(website.id, template.content)
        logger.info(
            "Created website from template",
            extra={"website_id": website.id, "template_id": template.id, "sections_count": len(page.content)},
        )
        return website, page

    def create_blank_site(
        self,
        owner_id: str | None,
        *,
        name: str = BLANK_SITE_NAME,
        description: str = BLANK_SITE_DESCRIPTION,
    ) -> tuple[Website, Page]:
        website = self._store.create_website(
            owner_id=owner_id,
            name=name,
            description=description,
            status=WebsiteStatus.draft,
        )
        return website, self._create_homepage(website.id, [])

    def create_site(
        self,
        owner_id: str | None,
        *,
        name: str,
        pages: Sequence[PageDraft],
        description: str | None = None,
        category: str | None = None,
    ) -> tuple[Website, list[Page]]:
        """Create a draft website and its pages; exactly one page ends up as homepage."""
        website = self._store.create_website(
            owner_id=owner_id,
            name=name,
            description=description,
            category=category,
            status=WebsiteStatus.draft,
        )
        homepage = next((position for position, draft in enumerate(pages) if draft.is_homepage), 0)
        created = []
        for position, draft in enumerate(pages):
            is_homepage = position == homepage
            created.append(
                self._store.create_page(
                    website_id=website.id,
                    title=draft.title,
                    slug=_draft_slug(draft, is_homepage),
                    is_homepage=is_homepage,
                    content=instantiate_content(draft.content),
                )
            )
        logger.info(
            "Created website",
            extra={"website_id": website.id, "pages_count": len(created)},
        )
        return website, created

    def rename_site(self, website_id: str, *, name: str, description: str | None = None) -> Website:
        name = name.strip()
        if not name:
            raise ValueError("Please enter a website name")
        return self._store.update_website(website_id, {"name": name, "description": description})

    def create_page(self, website_id: str, title: str, *, slug: str | None = None) -> Page:
        existing = self._store.list_pages(website_id)
        return self._store.create_page(
            website_id=website_id,
            title=title,
            slug=slug or _page_slug(title),
            is_homepage=not existing,
            content=[],
        )

    def set_homepage(self, website_id: str, page_id: str) -> Page:
        pages = self._store.list_pages(website_id)
        if not any(page.id == page_id for page in pages):
            raise PageNotFound(page_id)
        # Clear the old homepage before marking the new one.
        for page in pages:
            if page.is_homepage and page.id != page_id:
                self._store.update_page(page.id, is_homepage=False)
        return self._store.update_page(page_id, is_homepage=True)

    def delete_site(self, website_id: str) -> None:
        self._store.get_website(website_id)
        self._store.delete_pages(website_id)
        self._store.delete_website(website_id)
        logger.info("Deleted website", extra={"website_id": website_id})

    def _create_homepage(self, website_id: str, content: Sequence[Section]) -> Page:
        return self._store.create_page(
            website_id=website_id,
            title="Home",
            slug="home",
            is_homepage=True,
            content=instantiate_content(content),
        )


def _page_slug(title: str) -> str:
    return slugify_site_name(title) or "page"


def _draft_slug(draft: PageDraft, is_homepage: bool) -> str:
    if draft.slug and draft.slug.strip("/"):
        return draft.slug.strip("/")
    return "home" if is_homepage else _page_slug(draft.title)


__all__ = ["BLANK_SITE_DESCRIPTION", "BLANK_SITE_NAME", "SiteManager", "instantiate_content"]
