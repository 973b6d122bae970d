from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Mapping, Sequence

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .errors import PageNotFound, PersistenceWriteFailed, TemplateNotFound, WebsiteNotFound
from .models.page import Page, Template, TemplateFilter
from .models.section import Section
from .models.website import Profile, Website, WebsiteStatus

logger = logging.getLogger(__name__)


class FirestoreContentStore:
    """Firestore-backed content store for production use."""

    WEBSITES = "websites"
    PAGES = "pages"
    TEMPLATES = "templates"
    PROFILES = "profiles"

    def __init__(self, project_id: str | None = None, *, client: firestore.Client | None = None) -> None:
        self._db = client or firestore.Client(project=project_id)
        self._websites = self._db.collection(self.WEBSITES)
        self._pages = self._db.collection(self.PAGES)
        self._templates = self._db.collection(self.TEMPLATES)
        self._profiles = self._db.collection(self.PROFILES)

    def get_website(self, website_id: str) -> Website:
        doc = self._websites.document(website_id).get()
        if not doc.exists:
            raise WebsiteNotFound(website_id)
        return Website.model_validate({"id": doc.id, **doc.to_dict()})

    def create_website(self, *, owner_id: str | None, name: str, **fields: Any) -> Website:
        doc_ref = self._websites.document()
        website = Website(id=doc_ref.id, owner_id=owner_id, name=name, **fields)
        self._write(doc_ref.set, self._website_dict(website), target=f"website {website.id}")
        logger.info("Created website", extra={"website_id": website.id, "owner_id": owner_id})
        return website

    def update_website(self, website_id: str, fields: Mapping[str, Any]) -> Website:
        doc_ref = self._websites.document(website_id)
        update_data: dict[str, Any] = {"updated_at": datetime.utcnow()}
        for key, value in fields.items():
            update_data[key] = value.value if isinstance(value, WebsiteStatus) else value
        self._write(doc_ref.update, update_data, target=f"website {website_id}")
        logger.info(
            "Updated website",
            extra={"website_id": website_id, "fields": sorted(fields)},
        )
        return self.get_website(website_id)

    def delete_website(self, website_id: str) -> None:
        self._write(self._websites.document(website_id).delete, target=f"website {website_id}")

    def find_published_website(self, *, slug: str | None = None, domain: str | None = None) -> Website | None:
        query = self._websites.where(filter=FieldFilter("status", "==", WebsiteStatus.published.value))
        if domain is not None:
            query = query.where(filter=FieldFilter("domain", "==", domain))
        elif slug is not None:
            query = query.where(filter=FieldFilter("slug", "==", slug))
        else:
            return None
        for doc in query.limit(1).stream():
            return Website.model_validate({"id": doc.id, **doc.to_dict()})
        return None

    def get_page(self, page_id: str) -> Page:
        doc = self._pages.document(page_id).get()
        if not doc.exists:
            raise PageNotFound(page_id)
        return self._page_from_dict(doc.id, doc.to_dict())

    def list_pages(self, website_id: str) -> list[Page]:
        query = self._pages.where(filter=FieldFilter("website_id", "==", website_id)).order_by(
            "is_homepage", direction=firestore.Query.DESCENDING
        )
        return [self._page_from_dict(doc.id, doc.to_dict()) for doc in query.stream()]

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
        doc_ref = self._pages.document()
        page = Page(
            id=doc_ref.id,
            website_id=website_id,
            title=title,
            slug=slug,
            is_homepage=is_homepage,
            content=list(content),
            **fields,
        )
        self._write(doc_ref.set, self._page_dict(page), target=f"page {page.id}")
        logger.info("Created page", extra={"page_id": page.id, "website_id": website_id})
        return page

    def update_page(self, page_id: str, *, content: Sequence[Section] | None = None, **fields: Any) -> Page:
        doc_ref = self._pages.document(page_id)
        update_data: dict[str, Any] = dict(fields)
        if content is not None:
            update_data["content"] = [section.to_record() for section in content]
        self._write(doc_ref.update, update_data, target=f"page {page_id}")
        logger.info(
            "Updated page",
            extra={"page_id": page_id, "sections_count": len(content) if content is not None else None},
        )
        return self.get_page(page_id)

    def delete_pages(self, website_id: str) -> None:
        batch = self._db.batch()
        for doc in self._pages.where(filter=FieldFilter("website_id", "==", website_id)).stream():
            batch.delete(doc.reference)
        self._write(batch.commit, target=f"pages of website {website_id}")

    def get_template(self, template_id: str) -> Template:
        doc = self._templates.document(template_id).get()
        if not doc.exists:
            raise TemplateNotFound(template_id)
        return self._template_from_dict(doc.id, doc.to_dict())

    def list_templates(self, template_filter: TemplateFilter | None = None) -> list[Template]:
        template_filter = template_filter or TemplateFilter()
        query = self._templates
        if template_filter.public_only:
            query = query.where(filter=FieldFilter("is_public", "==", True))
        if template_filter.category:
            query = query.where(filter=FieldFilter("category", "==", template_filter.category))
        templates = [self._template_from_dict(doc.id, doc.to_dict()) for doc in query.stream()]
        return [template for template in templates if template_filter.matches(template)]

    def get_profile(self, owner_id: str) -> Profile | None:
        doc = self._profiles.document(owner_id).get()
        if not doc.exists:
            return None
        return Profile.model_validate({"id": doc.id, **doc.to_dict()})

    def _write(self, operation, *args: Any, target: str) -> None:
        try:
            operation(*args)
        except gcp_exceptions.GoogleAPICallError as exc:
            logger.error(
                "Firestore write failed",
                exc_info=True,
                extra={"target": target, "error": str(exc)},
            )
            raise PersistenceWriteFailed(target, str(exc)) from exc

    def _website_dict(self, website: Website) -> dict:
        data = website.model_dump(exclude={"id"})
        data["status"] = website.status.value
        return data

    def _page_dict(self, page: Page) -> dict:
        data = page.model_dump(exclude={"id", "content"})
        data["content"] = [section.to_record() for section in page.content]
        return data

    def _page_from_dict(self, page_id: str, data: dict) -> Page:
        content = _parse_sections(data.get("content") or [], source=page_id)
        return Page(
            id=page_id,
            website_id=data["website_id"],
            title=data.get("title", "Home"),
            slug=data.get("slug", "home"),
            is_homepage=data.get("is_homepage", False),
            content=content,
            meta_title=data.get("meta_title"),
            meta_description=data.get("meta_description"),
        )

    def _template_from_dict(self, template_id: str, data: dict) -> Template:
        # Older templates keep their sections under preview_data.
        records = data.get("content") or data.get("preview_data") or []
        return Template(
            id=template_id,
            name=data.get("name", "Untitled"),
            description=data.get("description"),
            category=data.get("category"),
            thumbnail_url=data.get("thumbnail_url"),
            is_public=data.get("is_public", True),
            content=_parse_sections(records, source=template_id),
        )


def _parse_sections(records: Sequence[Any], *, source: str) -> list[Section]:
    sections: list[Section] = []
    for position, record in enumerate(records):
        section = Section.from_record(record)
        if section.is_opaque:
            logger.warning(
                "Keeping unreadable section record as-is",
                extra={"source": source, "position": position},
            )
        sections.append(section)
    return sections


__all__ = ["FirestoreContentStore"]
