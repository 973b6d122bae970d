from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Any, Dict, Mapping, Protocol, Sequence

from .errors import PageNotFound, TemplateNotFound, WebsiteNotFound
from .models.page import Page, Template, TemplateFilter
from .models.section import Section
from .models.website import Profile, Website, WebsiteStatus


class ContentStore(Protocol):
    """Persistent store for websites, pages and templates.

    Write methods raise ``PersistenceWriteFailed`` when the backend rejects a write.
    """

    def get_website(self, website_id: str) -> Website:
        ...

    def create_website(self, *, owner_id: str | None, name: str, **fields: Any) -> Website:
        ...

    def update_website(self, website_id: str, fields: Mapping[str, Any]) -> Website:
        ...

    def delete_website(self, website_id: str) -> None:
        ...

    def find_published_website(self, *, slug: str | None = None, domain: str | None = None) -> Website | None:
        ...

    def get_page(self, page_id: str) -> Page:
        ...

    def list_pages(self, website_id: str) -> list[Page]:
        ...

    def create_page(
        self,
        *,
        website_id: str,
        title: str,
        slug: str,
        is_homepage: bool,
        content: Sequence[Section],
        **fields: Any,
    ) -> Page:
        ...

    def update_page(self, page_id: str, *, content: Sequence[Section] | None = None, **fields: Any) -> Page:
        ...

    def delete_pages(self, website_id: str) -> None:
        ...

    def get_template(self, template_id: str) -> Template:
        ...

    def list_templates(self, template_filter: TemplateFilter | None = None) -> list[Template]:
        ...

    def get_profile(self, owner_id: str) -> Profile | None:
        ...


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class InMemoryContentStore:
    """Process-local store used in dev and by the test-suite."""

    def __init__(
        self,
        *,
        templates: Sequence[Template] = (),
        profiles: Sequence[Profile] = (),
    ) -> None:
        self._websites: Dict[str, Website] = {}
        self._pages: Dict[str, Page] = {}
        self._templates: Dict[str, Template] = {template.id: template for template in templates}
        self._profiles: Dict[str, Profile] = {profile.id: profile for profile in profiles}
        self._lock = threading.Lock()

    def get_website(self, website_id: str) -> Website:
        with self._lock:
            website = self._websites.get(website_id)
            if website is None:
                raise WebsiteNotFound(website_id)
            return website.model_copy(deep=True)

    def create_website(self, *, owner_id: str | None, name: str, **fields: Any) -> Website:
        with self._lock:
            website = Website(id=generate_id("site"), owner_id=owner_id, name=name, **fields)
            self._websites[website.id] = website
            return website.model_copy(deep=True)

    def update_website(self, website_id: str, fields: Mapping[str, Any]) -> Website:
        with self._lock:
            website = self._websites.get(website_id)
            if website is None:
                raise WebsiteNotFound(website_id)
            data = website.model_dump()
            data.update(fields)
            data["updated_at"] = datetime.utcnow()
            updated = Website.model_validate(data)
            self._websites[website_id] = updated
            return updated.model_copy(deep=True)

    def delete_website(self, website_id: str) -> None:
        with self._lock:
            self._websites.pop(website_id, None)

    def find_published_website(self, *, slug: str | None = None, domain: str | None = None) -> Website | None:
        with self._lock:
            for website in self._websites.values():
                if website.status != WebsiteStatus.published:
                    continue
                if domain is not None and website.domain == domain:
                    return website.model_copy(deep=True)
                if slug is not None and website.slug == slug:
                    return website.model_copy(deep=True)
            return None

    def get_page(self, page_id: str) -> Page:
        with self._lock:
            page = self._pages.get(page_id)
            if page is None:
                raise PageNotFound(page_id)
            return page.model_copy(deep=True)

    def list_pages(self, website_id: str) -> list[Page]:
        with self._lock:
            pages = [page for page in self._pages.values() if page.website_id == website_id]
            # Homepage first, the order the builder and the viewer both expect.
            pages.sort(key=lambda page: not page.is_homepage)
            return [page.model_copy(deep=True) for page in pages]

    def create_page(
        self,
        *,
        website_id: str,
        title: str,
        slug: str,
        is_homepage: bool,
        content: Sequence[Section],
        **fields: Any,
    ) -> Page:
        with self._lock:
            page = Page(
                id=generate_id("page"),
                website_id=website_id,
                title=title,
                slug=slug,
                is_homepage=is_homepage,
                content=[section.model_copy(deep=True) for section in content],
                **fields,
            )
            self._pages[page.id] = page
            return page.model_copy(deep=True)

    def update_page(self, page_id: str, *, content: Sequence[Section] | None = None, **fields: Any) -> Page:
        with self._lock:
            page = self._pages.get(page_id)
            if page is None:
                raise PageNotFound(page_id)
            update: dict[str, Any] = dict(fields)
            if content is not None:
                update["content"] = [section.model_copy(deep=True) for section in content]
            page = page.model_copy(update=update)
            self._pages[page_id] = page
            return page.model_copy(deep=True)

    def delete_pages(self, website_id: str) -> None:
        with self._lock:
            for page_id in [pid for pid, page in self._pages.items() if page.website_id == website_id]:
                del self._pages[page_id]

    def get_template(self, template_id: str) -> Template:
        with self._lock:
            template = self._templates.get(template_id)
            if template is None:
                raise TemplateNotFound(template_id)
            return template.model_copy(deep=True)

    def list_templates(self, template_filter: TemplateFilter | None = None) -> list[Template]:
        template_filter = template_filter or TemplateFilter()
        with self._lock:
            return [
                template.model_copy(deep=True)
                for template in self._templates.values()
                if template_filter.matches(template)
            ]

    def get_profile(self, owner_id: str) -> Profile | None:
        with self._lock:
            profile = self._profiles.get(owner_id)
            return profile.model_copy() if profile else None

    def add_template(self, template: Template) -> None:
        with self._lock:
            self._templates[template.id] = template

    def add_profile(self, profile: Profile) -> None:
        with self._lock:
            self._profiles[profile.id] = profile


__all__ = ["ContentStore", "InMemoryContentStore", "generate_id"]
