from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Protocol

import vertexai
from pydantic import BaseModel, Field, ValidationError
from vertexai.generative_models import GenerationConfig, GenerativeModel

from .errors import InvalidGeneratedContent, SiteComposerError
from .job_store import GenerationJobStore
from .models.job import GenerationJob, GenerationRequest, JobStatus
from .models.page import PageDraft
from .section_registry import DEFAULT_SECTIONS, validate_section
from .sites import SiteManager

logger = logging.getLogger(__name__)


class ContentGenerator(Protocol):
    """Opaque collaborator producing raw site content for a business description."""

    def generate(self, prompt: str, category: str, *, business_name: str | None = None) -> Any:
        ...


class GeneratedSite(BaseModel):
    name: str
    description: str | None = None
    pages: list[PageDraft] = Field(default_factory=list)


def build_prompt(prompt: str, category: str, business_name: str | None = None) -> str:
    kinds = ", ".join(kind.value for kind in DEFAULT_SECTIONS)
    return f"""You are an expert website designer and copywriter.
Create a complete website for this business.

Business Name: {business_name or "Professional Business"}
Industry Category: {category}
Business Description: {prompt}

Return a JSON object with this structure:
{{
  "websiteName": "business name (2-5 words)",
  "description": "one sentence describing the business",
  "pages": [
    {{"title": "Home", "slug": "/", "isHomepage": true, "sections": [{{"type": "hero", "heading": "...", "subheading": "...", "content": "..."}}]}}
  ]
}}

Rules:
- Section "type" must be one of: {kinds}
- The homepage starts with navigation and hero sections and ends with contact and footer sections
- features/services items have title, description and icon; stats items have value and label
- testimonials items have name, role, description and rating (1-5)
- contact sections include fields for Name (text), Email (email) and Message (textarea)
- Every page has navigation and footer sections
"""


class VertexAIContentGenerator:
    """Content generation backed by Vertex AI Gemini models."""

    def __init__(
        self,
        *,
        project_id: str,
        location: str = "asia-northeast1",
        model_name: str = "gemini-1.5-pro",
        temperature: float = 0.3,
    ) -> None:
        self.project_id = project_id
        self.location = location
        self.model_name = model_name
        self.temperature = temperature

        vertexai.init(project=project_id, location=location)
        self.model = GenerativeModel(model_name)

    def generate(self, prompt: str, category: str, *, business_name: str | None = None) -> Any:
        return self.generate_json(build_prompt(prompt, category, business_name))

    def generate_content(self, prompt: str, *, max_output_tokens: int = 8192) -> str:
        generation_config = GenerationConfig(
            temperature=self.temperature,
            max_output_tokens=max_output_tokens,
        )
        response = self.model.generate_content(
            f"{prompt}\n\nPlease respond with valid JSON only.",
            generation_config=generation_config,
        )
        generated_text = response.text

        logger.info(
            "Generated content with Vertex AI",
            extra={
                "model": self.model_name,
                "temperature": self.temperature,
                "input_length": len(prompt),
                "output_length": len(generated_text),
            },
        )
        return generated_text

    def generate_json(self, prompt: str) -> Any:
        return parse_json_response(self.generate_content(prompt))


def parse_json_response(response: str) -> Any:
    """Parse model output, tolerating a surrounding markdown code fence."""
    text = response.strip()
    if text.startswith("```json"):
        text = text[7:]
    if text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    try:
        return json.loads(text.strip())
    except json.JSONDecodeError as exc:
        logger.error("Failed to parse JSON response", extra={"response_length": len(response)})
        raise InvalidGeneratedContent(f"response is not valid JSON: {exc}") from exc


def _raw_pages(raw: Any) -> list[Mapping[str, Any]]:
    if isinstance(raw, Mapping):
        pages = raw.get("pages")
        if pages is None and "sections" in raw:
            pages = [raw]
    else:
        pages = raw
    if not isinstance(pages, list) or not pages:
        raise InvalidGeneratedContent("expected a non-empty list of pages or sections")
    # A bare list of sections is a single homepage.
    if all(isinstance(entry, Mapping) and ("type" in entry or "kind" in entry) for entry in pages):
        return [{"title": "Home", "isHomepage": True, "sections": pages}]
    return pages


def accept_generated_content(raw: Any, *, fallback_name: str | None = None) -> GeneratedSite:
    """Validate generator output against the section registry.

    Any section with an unknown kind or malformed fields rejects the whole
    result; nothing partial is accepted.
    """
    pages: list[PageDraft] = []
    problems: list[str] = []
    for page_position, raw_page in enumerate(_raw_pages(raw)):
        if not isinstance(raw_page, Mapping):
            problems.append(f"page {page_position}: not an object")
            continue
        raw_sections = raw_page.get("sections") or raw_page.get("content") or []
        if not raw_sections:
            problems.append(f"page {page_position}: no sections")
        sections = []
        for position, raw_section in enumerate(raw_sections):
            if not isinstance(raw_section, Mapping):
                problems.append(f"page {page_position} section {position}: not an object")
                continue
            try:
                sections.append(validate_section(raw_section))
            except (SiteComposerError, ValidationError) as exc:
                problems.append(f"page {page_position} section {position}: {exc}")
        data = {key: value for key, value in raw_page.items() if key not in ("sections", "content")}
        try:
            pages.append(PageDraft.model_validate({**data, "content": sections}))
        except ValidationError as exc:
            problems.append(f"page {page_position}: {exc}")
    if problems:
        raise InvalidGeneratedContent("; ".join(problems))

    name = fallback_name or "Untitled Website"
    description = None
    if isinstance(raw, Mapping):
        name = raw.get("websiteName") or raw.get("name") or name
        description = raw.get("description")
    return GeneratedSite(name=name, description=description, pages=pages)


class SiteGenerationService:
    """Runs a generation job: generate, validate, then create the draft site."""

    def __init__(self, generator: ContentGenerator, sites: SiteManager, jobs: GenerationJobStore) -> None:
        self._generator = generator
        self._sites = sites
        self._jobs = jobs

    def submit(self, request: GenerationRequest) -> GenerationJob:
        return self._jobs.create_job(request)

    def run(self, job_id: str) -> GenerationJob:
        job = self._jobs.get_job(job_id)
        if job is None:
            raise KeyError(job_id)
        request = job.request
        self._jobs.update_job(job_id, status=JobStatus.in_progress, progress=0.1)
        try:
            raw = self._generator.generate(request.prompt, request.category, business_name=request.business_name)
            self._jobs.update_job(job_id, progress=0.5)
            generated = accept_generated_content(raw, fallback_name=request.business_name)
            self._jobs.update_job(job_id, progress=0.8)
            website, pages = self._sites.create_site(
                request.owner_id,
                name=generated.name,
                pages=generated.pages,
                description=generated.description,
                category=request.category,
            )
        except Exception as exc:
            logger.error(
                "Site generation failed",
                exc_info=True,
                extra={"job_id": job_id, "error": str(exc)},
            )
            self._jobs.update_job(job_id, status=JobStatus.failed, progress=1.0, errors=[str(exc)])
            raise

        logger.info(
            "Site generation completed",
            extra={"job_id": job_id, "website_id": website.id, "pages_count": len(pages)},
        )
        return self._jobs.update_job(job_id, status=JobStatus.completed, progress=1.0, website_id=website.id)


__all__ = [
    "ContentGenerator",
    "GeneratedSite",
    "SiteGenerationService",
    "VertexAIContentGenerator",
    "accept_generated_content",
    "build_prompt",
    "parse_json_response",
]
