from __future__ import annotations

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, Literal

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field

from site_composer.assets import CloudStorageObjectStorage, InMemoryObjectStorage, attach_uploaded_asset
from site_composer.config import Settings
from site_composer.content_generation import SiteGenerationService, VertexAIContentGenerator
from site_composer.content_store import ContentStore, InMemoryContentStore
from site_composer.domain_provisioning import InMemoryDomainProvisioner, VercelDomainProvisioner
from site_composer.editing import EditorSession
from site_composer.errors import (
    DomainProvisioningFailed,
    PageNotFound,
    PersistenceWriteFailed,
    ReservedDomain,
    SiteComposerError,
    TemplateNotFound,
    WebsiteNotFound,
)
from site_composer.firestore_content_store import FirestoreContentStore
from site_composer.firestore_job_store import FirestoreJobStore
from site_composer.job_store import JobStore
from site_composer.logging_config import set_trace_id, setup_logging, trace_id_from_header
from site_composer.models.job import GenerationJob, GenerationRequest, JobStatus
from site_composer.models.page import TemplateFilter
from site_composer.models.section import Section, SectionCategory
from site_composer.models.website import Website
from site_composer.ordering import Direction, SectionEditor
from site_composer.public_site import PublicSiteRenderer
from site_composer.publishing import CustomDomainTarget, PublishWorkflow, SubdomainTarget
from site_composer.pubsub_client import PubSubClient
from site_composer.rendering import RenderMode, Viewport, render_page, to_html
from site_composer.sites import SiteManager

settings = Settings.from_env()

setup_logging(environment=settings.environment, project_id=settings.project_id)
logger = logging.getLogger(__name__)

app = FastAPI(title="Site Composer API", version="0.1.0")

# Use Firestore and real collaborators in production, in-memory for dev
if settings.is_dev:
    content_store = InMemoryContentStore()
    job_store = JobStore()
    provisioner = InMemoryDomainProvisioner()
    object_storage = InMemoryObjectStorage()
else:
    content_store = FirestoreContentStore(project_id=settings.project_id)
    job_store = FirestoreJobStore(project_id=settings.project_id)
    provisioner = VercelDomainProvisioner(
        project_id=settings.vercel_project_id or "",
        token=settings.vercel_token,
        gcp_project_id=settings.project_id,
    )
    object_storage = CloudStorageObjectStorage(project_id=settings.project_id, bucket_name=settings.assets_bucket or "")

pubsub_client = (
    PubSubClient(
        settings.project_id,
        requests_topic=settings.pubsub_topic_generation_requests,
        completed_topic=settings.pubsub_topic_generation_completed,
    )
    if settings.project_id and not settings.is_dev
    else None
)

site_manager = SiteManager(content_store)
publish_workflow = PublishWorkflow(
    content_store,
    provisioner,
    base_domain=settings.base_domain,
    reserved_suffixes=settings.reserved_domain_suffixes,
)
public_renderer = PublicSiteRenderer(
    content_store,
    base_domain=settings.base_domain,
    main_app_hosts=settings.main_app_hosts,
)
generation_service = (
    SiteGenerationService(
        VertexAIContentGenerator(
            project_id=settings.project_id,
            location=settings.vertex_location,
            model_name=settings.vertex_model,
        ),
        site_manager,
        job_store,
    )
    if settings.project_id
    else None
)


@dataclass
class OpenSession:
    website: Website
    session: EditorSession
    editor: SectionEditor
    last_used: float = 0.0


class SessionRegistry:
    """Open builder sessions; each one owns its edit buffers.

    Sessions live in this process only. One left idle for longer than
    ``idle_seconds`` is dropped, unsaved edits included, the next time the
    registry is touched.
    """

    def __init__(
        self,
        store: ContentStore,
        *,
        idle_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._idle_seconds = idle_seconds
        self._clock = clock
        self._sessions: Dict[str, OpenSession] = {}
        self._lock = threading.Lock()

    def open(self, website: Website) -> str:
        session = EditorSession(self._store, website_id=website.id)
        session_id = uuid.uuid4().hex
        with self._lock:
            self._expire_idle()
            self._sessions[session_id] = OpenSession(
                website=website,
                session=session,
                editor=SectionEditor(session),
                last_used=self._clock(),
            )
        return session_id

    def get(self, session_id: str) -> OpenSession:
        with self._lock:
            self._expire_idle()
            entry = self._sessions.get(session_id)
            if entry is not None:
                entry.last_used = self._clock()
        if entry is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return entry

    def close(self, session_id: str) -> None:
        with self._lock:
            entry = self._sessions.pop(session_id, None)
        if entry is not None:
            entry.session.discard()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def _expire_idle(self) -> None:
        cutoff = self._clock() - self._idle_seconds
        expired = [session_id for session_id, entry in self._sessions.items() if entry.last_used < cutoff]
        for session_id in expired:
            self._sessions.pop(session_id).session.discard()
        if expired:
            logger.info("Expired idle editor sessions", extra={"count": len(expired)})


sessions = SessionRegistry(content_store, idle_seconds=settings.session_idle_seconds)


_NOT_FOUND = (PageNotFound, WebsiteNotFound, TemplateNotFound)


@app.exception_handler(SiteComposerError)
async def site_composer_error_handler(request: Request, exc: SiteComposerError) -> JSONResponse:
    if isinstance(exc, _NOT_FOUND):
        status_code = 404
    elif isinstance(exc, ReservedDomain):
        status_code = 409
    elif isinstance(exc, DomainProvisioningFailed):
        status_code = 502
    elif isinstance(exc, PersistenceWriteFailed):
        status_code = 503
    else:
        status_code = 400
    return JSONResponse(
        status_code=status_code,
        content={"error": type(exc).__name__, "detail": str(exc), "retryable": exc.retryable},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": "ValueError", "detail": str(exc), "retryable": False})


@app.middleware("http")
async def trace_context(request: Request, call_next):
    set_trace_id(trace_id_from_header(request.headers.get("x-cloud-trace-context")) or uuid.uuid4().hex)
    return await call_next(request)


class OpenSessionRequest(BaseModel):
    website_id: str


class OpenSessionResponse(BaseModel):
    session_id: str
    website_id: str
    selected_page_id: str | None
    pages: list[dict[str, Any]]


class ContentResponse(BaseModel):
    page_id: str
    has_unsaved_changes: bool
    editing_index: int | None
    sections: list[dict[str, Any]]


class AddSectionRequest(BaseModel):
    kind: str


class MoveSectionRequest(BaseModel):
    direction: Direction


class UpdateFieldRequest(BaseModel):
    field: str
    value: Any = None


class ApplyStyleRequest(BaseModel):
    element: str
    font_size: str | None = None
    font_family: str | None = None


class ItemRequest(BaseModel):
    item: dict[str, Any] = Field(default_factory=dict)


class UpdateItemRequest(BaseModel):
    field: str
    value: Any = None


class PublishRequest(BaseModel):
    target: Literal["subdomain", "custom"] = "subdomain"
    domain: str | None = None
    site_title: str | None = None
    favicon_url: str | None = None


class WebsiteResponse(BaseModel):
    website: dict[str, Any]
    address: str | None = None


class CreateSiteRequest(BaseModel):
    owner_id: str | None = None


class UseTemplateRequest(BaseModel):
    owner_id: str | None = None


class GenerateSiteRequest(BaseModel):
    owner_id: str
    prompt: str
    category: str = "business"
    business_name: str | None = None


class GenerateSiteResponse(BaseModel):
    job_id: str
    status: JobStatus


class JobResponse(BaseModel):
    id: str
    status: JobStatus
    progress: float
    website_id: str | None
    errors: list[str]

    @staticmethod
    def from_record(record: GenerationJob) -> "JobResponse":
        return JobResponse(
            id=record.id,
            status=record.status,
            progress=record.progress,
            website_id=record.website_id,
            errors=list(record.errors),
        )


def _content_response(entry: OpenSession, page_id: str) -> ContentResponse:
    session = entry.session
    return ContentResponse(
        page_id=page_id,
        has_unsaved_changes=session.has_unsaved_changes(page_id),
        editing_index=session.editing_index if session.selected_page_id == page_id else None,
        sections=[section.to_record() for section in session.effective_content(page_id)],
    )


def _section_record(section: Section) -> dict[str, Any]:
    return section.to_record()


def _website_response(website: Website) -> WebsiteResponse:
    return WebsiteResponse(website=website.model_dump(mode="json"), address=publish_workflow.public_address(website))


@app.post("/v1/sessions", response_model=OpenSessionResponse)
async def open_session(request: OpenSessionRequest) -> OpenSessionResponse:
    website = content_store.get_website(request.website_id)
    pages = content_store.list_pages(website.id)
    session_id = sessions.open(website)
    entry = sessions.get(session_id)
    if pages:
        entry.session.select_page(pages[0].id)
    return OpenSessionResponse(
        session_id=session_id,
        website_id=website.id,
        selected_page_id=entry.session.selected_page_id,
        pages=[{"id": page.id, "title": page.title, "slug": page.slug, "is_homepage": page.is_homepage} for page in pages],
    )


@app.delete("/v1/sessions/{session_id}")
async def close_session(session_id: str) -> JSONResponse:
    sessions.close(session_id)
    return JSONResponse({"status": "closed"})


@app.post("/v1/sessions/{session_id}/pages/{page_id}:select", response_model=ContentResponse)
async def select_page(session_id: str, page_id: str) -> ContentResponse:
    entry = sessions.get(session_id)
    entry.session.select_page(page_id)
    return _content_response(entry, page_id)


@app.get("/v1/sessions/{session_id}/pages/{page_id}/content", response_model=ContentResponse)
async def get_content(session_id: str, page_id: str) -> ContentResponse:
    return _content_response(sessions.get(session_id), page_id)


@app.get("/v1/sessions/{session_id}/pages/{page_id}/sections")
async def list_sections_by_category(session_id: str, page_id: str, category: SectionCategory) -> JSONResponse:
    entry = sessions.get(session_id)
    pairs = entry.editor.sections_by_category(page_id, category)
    return JSONResponse([{"index": index, "section": _section_record(section)} for index, section in pairs])


@app.get("/v1/sessions/{session_id}/pages/{page_id}/preview", response_class=HTMLResponse)
async def preview_page(session_id: str, page_id: str, viewport: Viewport = Viewport.desktop) -> HTMLResponse:
    entry = sessions.get(session_id)
    nodes = render_page(entry.session.effective_content(page_id), RenderMode.editor, viewport)
    return HTMLResponse(str(to_html(nodes)))


@app.post("/v1/sessions/{session_id}/pages/{page_id}/sections", response_model=ContentResponse)
async def add_section(session_id: str, page_id: str, request: AddSectionRequest) -> ContentResponse:
    entry = sessions.get(session_id)
    entry.editor.add_section(page_id, request.kind)
    return _content_response(entry, page_id)


@app.delete("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}", response_model=ContentResponse)
async def delete_section(session_id: str, page_id: str, index: int) -> ContentResponse:
    entry = sessions.get(session_id)
    entry.editor.delete_section(page_id, index)
    return _content_response(entry, page_id)


@app.post("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}:move", response_model=ContentResponse)
async def move_section(session_id: str, page_id: str, index: int, request: MoveSectionRequest) -> ContentResponse:
    entry = sessions.get(session_id)
    entry.editor.move_section(page_id, index, request.direction)
    return _content_response(entry, page_id)


@app.post("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}:toggle-visibility", response_model=ContentResponse)
async def toggle_visibility(session_id: str, page_id: str, index: int) -> ContentResponse:
    entry = sessions.get(session_id)
    entry.editor.toggle_visibility(page_id, index)
    return _content_response(entry, page_id)


@app.post("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}:select", response_model=ContentResponse)
async def select_section(session_id: str, page_id: str, index: int) -> ContentResponse:
    entry = sessions.get(session_id)
    if entry.session.selected_page_id != page_id:
        entry.session.select_page(page_id)
    entry.session.select_section(index)
    return _content_response(entry, page_id)


@app.patch("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}")
async def update_field(session_id: str, page_id: str, index: int, request: UpdateFieldRequest) -> JSONResponse:
    entry = sessions.get(session_id)
    section = entry.editor.update_field(page_id, index, request.field, request.value)
    return JSONResponse(_section_record(section))


@app.patch("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}/style")
async def apply_style(session_id: str, page_id: str, index: int, request: ApplyStyleRequest) -> JSONResponse:
    entry = sessions.get(session_id)
    section = entry.editor.apply_style(
        page_id,
        index,
        request.element,
        font_size=request.font_size,
        font_family=request.font_family,
    )
    return JSONResponse(_section_record(section))


@app.post("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}/items")
async def add_item(session_id: str, page_id: str, index: int, request: ItemRequest) -> JSONResponse:
    entry = sessions.get(session_id)
    return JSONResponse(_section_record(entry.editor.add_item(page_id, index, request.item)))


@app.patch("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}/items/{item_index}")
async def update_item(
    session_id: str, page_id: str, index: int, item_index: int, request: UpdateItemRequest
) -> JSONResponse:
    entry = sessions.get(session_id)
    section = entry.editor.update_item(page_id, index, item_index, request.field, request.value)
    return JSONResponse(_section_record(section))


@app.delete("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}/items/{item_index}")
async def remove_item(session_id: str, page_id: str, index: int, item_index: int) -> JSONResponse:
    entry = sessions.get(session_id)
    return JSONResponse(_section_record(entry.editor.remove_item(page_id, index, item_index)))


@app.post("/v1/sessions/{session_id}/pages/{page_id}/sections/{index}/image")
async def upload_image(
    session_id: str,
    page_id: str,
    index: int,
    request: Request,
    filename: str,
    field: str = "image",
    item_index: int | None = None,
) -> JSONResponse:
    entry = sessions.get(session_id)
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="Empty upload")
    url = await asyncio.to_thread(
        attach_uploaded_asset,
        entry.editor,
        object_storage,
        owner_id=entry.website.owner_id or "anonymous",
        website_id=entry.website.id,
        page_id=page_id,
        index=index,
        filename=filename,
        data=data,
        content_type=request.headers.get("content-type"),
        field=field,
        item_index=item_index,
    )
    return JSONResponse({"url": url})


@app.post("/v1/sessions/{session_id}/pages/{page_id}:save", response_model=ContentResponse)
async def save_page(session_id: str, page_id: str) -> ContentResponse:
    entry = sessions.get(session_id)
    await asyncio.to_thread(entry.session.save, page_id)
    return _content_response(entry, page_id)


@app.post("/v1/sessions/{session_id}/pages/{page_id}:discard", response_model=ContentResponse)
async def discard_page(session_id: str, page_id: str) -> ContentResponse:
    entry = sessions.get(session_id)
    entry.session.discard(page_id)
    return _content_response(entry, page_id)


@app.post("/v1/websites", response_model=WebsiteResponse)
async def create_blank_site(request: CreateSiteRequest) -> WebsiteResponse:
    website, _ = site_manager.create_blank_site(request.owner_id)
    return _website_response(website)


@app.get("/v1/websites/{website_id}", response_model=WebsiteResponse)
async def get_website(website_id: str) -> WebsiteResponse:
    return _website_response(content_store.get_website(website_id))


@app.delete("/v1/websites/{website_id}")
async def delete_site(website_id: str) -> JSONResponse:
    if content_store.get_website(website_id).is_published:
        await asyncio.to_thread(publish_workflow.unpublish, website_id)
    await asyncio.to_thread(site_manager.delete_site, website_id)
    return JSONResponse({"status": "deleted"})


@app.post("/v1/websites/{website_id}:publish", response_model=WebsiteResponse)
async def publish_website(website_id: str, request: PublishRequest) -> WebsiteResponse:
    if request.target == "custom":
        target = CustomDomainTarget(domain=request.domain or "")
    else:
        target = SubdomainTarget()
    website = await asyncio.to_thread(
        publish_workflow.publish,
        website_id,
        target,
        site_title=request.site_title,
        favicon_url=request.favicon_url,
    )
    return _website_response(website)


@app.post("/v1/websites/{website_id}:unpublish", response_model=WebsiteResponse)
async def unpublish_website(website_id: str) -> WebsiteResponse:
    website = await asyncio.to_thread(publish_workflow.unpublish, website_id)
    return _website_response(website)


@app.get("/v1/templates")
async def list_templates(category: str | None = None, keyword: str | None = None) -> JSONResponse:
    templates = site_manager.list_templates(TemplateFilter(category=category, keyword=keyword))
    return JSONResponse(
        [
            {
                "id": template.id,
                "name": template.name,
                "description": template.description,
                "category": template.category,
                "thumbnail_url": template.thumbnail_url,
            }
            for template in templates
        ]
    )


@app.post("/v1/templates/{template_id}:use", response_model=WebsiteResponse)
async def use_template(template_id: str, request: UseTemplateRequest) -> WebsiteResponse:
    website, _ = site_manager.use_template(request.owner_id, template_id)
    return _website_response(website)


@app.post("/v1/sites:generate", response_model=GenerateSiteResponse)
async def generate_site(request: GenerateSiteRequest, background_tasks: BackgroundTasks) -> GenerateSiteResponse:
    if generation_service is None:
        raise HTTPException(status_code=503, detail="Site generation is not configured")
    job = generation_service.submit(GenerationRequest(**request.model_dump()))

    # In production, publish to Pub/Sub; in dev, use background task
    if pubsub_client is not None:
        pubsub_client.publish_generation_request(job_id=job.id, owner_id=request.owner_id)
    else:
        background_tasks.add_task(_run_generation, job.id)
    return GenerateSiteResponse(job_id=job.id, status=job.status)


@app.get("/v1/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str) -> JobResponse:
    record = job_store.get_job(job_id)
    if not record:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobResponse.from_record(record)


async def _run_generation(job_id: str) -> None:
    try:
        await asyncio.to_thread(generation_service.run, job_id)
    except Exception:
        # The job record already carries the failure.
        logger.warning("Background generation job failed", extra={"job_id": job_id})


@app.get("/v1/public/render", response_class=HTMLResponse)
async def render_public(
    request: Request,
    host: str | None = None,
    path: str | None = None,
    viewport: Viewport = Viewport.desktop,
) -> HTMLResponse:
    hostname = host or request.headers.get("x-forwarded-host") or request.url.hostname or ""
    html = await asyncio.to_thread(public_renderer.render, hostname, path, viewport=viewport)
    return HTMLResponse(html)


@app.get("/health")
async def healthcheck() -> JSONResponse:
    return JSONResponse({"status": "ok"})
