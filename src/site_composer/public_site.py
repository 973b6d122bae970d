from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence
from urllib.parse import quote

from jinja2 import DictLoader, Environment, select_autoescape
from markupsafe import Markup

from .content_store import ContentStore
from .errors import PageNotFound, WebsiteNotFound
from .models.page import Page
from .models.section import SectionKind
from .models.website import Website
from .rendering import RenderMode, Viewport, render_page, to_html
from .slugs import page_path_key

logger = logging.getLogger(__name__)

DEFAULT_MAIN_APP_HOSTS: Sequence[str] = ("localhost", "127.0.0.1", "lovableproject.com")
DEFAULT_TITLE = "Taskly: All-in-One Service Management"
DEFAULT_DESCRIPTION = "Streamline your service business with Taskly's website builder and CRM tools."

DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>{{ meta.title }}</title>
  <meta name="description" content="{{ meta.description }}">
  <meta property="og:title" content="{{ meta.title }}">
  <meta property="og:description" content="{{ meta.description }}">
  {% if meta.image %}<meta property="og:image" content="{{ meta.image }}">
  <meta property="twitter:image" content="{{ meta.image }}">{% endif %}
  <meta property="twitter:title" content="{{ meta.title }}">
  <meta property="twitter:description" content="{{ meta.description }}">
  {% if favicon_url %}<link rel="icon" href="{{ favicon_url }}">{% endif %}
</head>
<body>
  <main data-website-id="{{ website_id }}" data-page-id="{{ page_id }}">
{{ body }}
  </main>
  {% if whatsapp_url %}<a class="whatsapp-button" href="{{ whatsapp_url }}" target="_blank" rel="noopener" aria-label="Chat on WhatsApp" style="position:fixed;bottom:24px;right:24px;z-index:9999;background:#25D366;border-radius:50%;width:56px;height:56px;display:flex;align-items:center;justify-content:center">WhatsApp</a>{% endif %}
</body>
</html>
"""


def _jinja_env() -> Environment:
    return Environment(
        loader=DictLoader({"document.html.j2": DOCUMENT_TEMPLATE}),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )


@dataclass(frozen=True)
class SiteAddress:
    """How a public request identifies its site: a subdomain slug or a custom domain."""

    slug: str | None = None
    domain: str | None = None


@dataclass(frozen=True)
class PageMeta:
    title: str
    description: str
    image: str | None


def _strip_host(hostname: str) -> str:
    return hostname.split(":", 1)[0].strip().lower().rstrip(".")


def is_main_app_host(hostname: str, base_domain: str, main_app_hosts: Sequence[str] = DEFAULT_MAIN_APP_HOSTS) -> bool:
    host = _strip_host(hostname)
    if host in (base_domain, f"www.{base_domain}", f"app.{base_domain}"):
        return True
    return any(host == candidate or host.endswith(f".{candidate}") for candidate in main_app_hosts)


def resolve_site_address(
    hostname: str,
    base_domain: str,
    main_app_hosts: Sequence[str] = DEFAULT_MAIN_APP_HOSTS,
) -> SiteAddress | None:
    """Map a request host to the site it serves; None for the builder's own hosts."""
    host = _strip_host(hostname)
    if not host or is_main_app_host(host, base_domain, main_app_hosts):
        return None
    labels = host.split(".")
    if host.endswith(f".{base_domain}") and len(labels) >= 3 and labels[0] != "www":
        return SiteAddress(slug=labels[0])
    return SiteAddress(domain=host)


def select_page(pages: Sequence[Page], path: str | None) -> Page:
    """Page whose slug or hyphenated title matches ``path``; else homepage; else first page."""
    if not pages:
        raise PageNotFound(path or "/")
    wanted = (path or "").strip().lstrip("/").rstrip("/")
    if wanted:
        for page in pages:
            if page.slug.lstrip("/") == wanted or page_path_key(page.title) == wanted:
                return page
    for page in pages:
        if page.is_homepage:
            return page
    return pages[0]


def page_meta(website: Website, page: Page) -> PageMeta:
    title = description = ""
    image = None
    hero = next((section for section in page.content if section.kind == SectionKind.hero.value), None)
    if hero is not None:
        title = hero.heading or ""
        description = hero.content or ""
        image = hero.image or None
    return PageMeta(
        title=title or page.meta_title or website.site_title or website.name or DEFAULT_TITLE,
        description=description or page.meta_description or website.description or DEFAULT_DESCRIPTION,
        # Favicon wins over the hero image for link previews.
        image=website.favicon_url or image,
    )


def whatsapp_link(full_number: str | None) -> str | None:
    if not full_number:
        return None
    return f"https://api.whatsapp.com/send?phone={quote(full_number)}&text=Hello"


class PublicSiteRenderer:
    """Serves published sites as complete HTML documents."""

    def __init__(
        self,
        store: ContentStore,
        *,
        base_domain: str,
        main_app_hosts: Sequence[str] = DEFAULT_MAIN_APP_HOSTS,
    ) -> None:
        self._store = store
        self._base_domain = base_domain
        self._main_app_hosts = main_app_hosts
        self._env = _jinja_env()

    def find_website(self, hostname: str) -> Website:
        address = resolve_site_address(hostname, self._base_domain, self._main_app_hosts)
        if address is None:
            raise WebsiteNotFound(hostname)
        website = self._store.find_published_website(slug=address.slug, domain=address.domain)
        if website is None:
            logger.info(
                "No published website for host",
                extra={"hostname": hostname, "slug": address.slug, "domain": address.domain},
            )
            raise WebsiteNotFound(hostname)
        return website

    def render(self, hostname: str, path: str | None = None, *, viewport: Viewport | str = Viewport.desktop) -> str:
        website = self.find_website(hostname)
        page = select_page(self._store.list_pages(website.id), path)
        return self.render_document(website, page, viewport=viewport)

    def render_document(self, website: Website, page: Page, *, viewport: Viewport | str = Viewport.desktop) -> str:
        body: Markup = to_html(render_page(page.content, RenderMode.public, viewport))
        template = self._env.get_template("document.html.j2")
        return template.render(
            meta=page_meta(website, page),
            favicon_url=website.favicon_url,
            website_id=website.id,
            page_id=page.id,
            body=body,
            whatsapp_url=whatsapp_link(website.whatsapp_full_number),
        )


__all__ = [
    "DEFAULT_MAIN_APP_HOSTS",
    "PageMeta",
    "PublicSiteRenderer",
    "SiteAddress",
    "is_main_app_host",
    "page_meta",
    "resolve_site_address",
    "select_page",
    "whatsapp_link",
]
