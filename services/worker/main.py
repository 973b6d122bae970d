from __future__ import annotations

import asyncio
import base64
import json
import logging
import uuid
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from site_composer.config import Settings
from site_composer.content_generation import SiteGenerationService, VertexAIContentGenerator
from site_composer.content_store import InMemoryContentStore
from site_composer.firestore_content_store import FirestoreContentStore
from site_composer.firestore_job_store import FirestoreJobStore
from site_composer.job_store import JobStore
from site_composer.logging_config import set_trace_id, setup_logging
from site_composer.models.job import JobStatus
from site_composer.pubsub_client import PubSubClient
from site_composer.sites import SiteManager

settings = Settings.from_env()

setup_logging(environment=settings.environment, project_id=settings.project_id)
logger = logging.getLogger(__name__)

if settings.is_dev:
    content_store = InMemoryContentStore()
    job_store = JobStore()
else:
    content_store = FirestoreContentStore(project_id=settings.project_id)
    job_store = FirestoreJobStore(project_id=settings.project_id)

pubsub_client = (
    PubSubClient(
        settings.project_id,
        requests_topic=settings.pubsub_topic_generation_requests,
        completed_topic=settings.pubsub_topic_generation_completed,
    )
    if settings.project_id and not settings.is_dev
    else None
)
generation_service = (
    SiteGenerationService(
        VertexAIContentGenerator(
            project_id=settings.project_id,
            location=settings.vertex_location,
            model_name=settings.vertex_model,
        ),
        SiteManager(content_store),
        job_store,
    )
    if settings.project_id
    else None
)

app = FastAPI(title="Site Composer Worker", version="0.1.0")


class PubSubMessage(BaseModel):
    """Pub/Sub push message format."""

    message: dict[str, Any]
    subscription: str


def decode_payload(pubsub_message: PubSubMessage) -> dict[str, Any]:
    message_data = pubsub_message.message.get("data", "")
    if not message_data:
        raise HTTPException(status_code=400, detail="No message data")
    try:
        payload = json.loads(base64.b64decode(message_data).decode("utf-8"))
    except (ValueError, UnicodeDecodeError) as exc:
        raise HTTPException(status_code=400, detail=f"Undecodable message data: {exc}") from exc
    if not isinstance(payload, dict) or not payload.get("job_id"):
        raise HTTPException(status_code=400, detail="Missing required field: job_id")
    return payload


@app.post("/v1/worker/process")
async def process_generation_request(request: Request) -> JSONResponse:
    """Run a site generation job delivered by the Pub/Sub push subscription."""
    trace_id = str(uuid.uuid4())
    set_trace_id(trace_id)

    body = await request.json()
    payload = decode_payload(PubSubMessage.model_validate(body))
    job_id = payload["job_id"]

    if generation_service is None:
        raise HTTPException(status_code=503, detail="Site generation is not configured")

    logger.info(
        "Processing generation request",
        extra={"job_id": job_id, "owner_id": payload.get("owner_id"), "trace_id": trace_id},
    )

    if job_store.get_job(job_id) is None:
        # Acknowledge so Pub/Sub stops redelivering a job that no longer exists.
        logger.warning("Generation job not found", extra={"job_id": job_id})
        return JSONResponse({"status": "ignored", "job_id": job_id})

    try:
        job = await asyncio.to_thread(generation_service.run, job_id)
    except Exception as exc:
        _notify_completed(job_id, None, JobStatus.failed)
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    _notify_completed(job_id, job.website_id, job.status)
    return JSONResponse({"status": "success", "job_id": job_id, "website_id": job.website_id})


def _notify_completed(job_id: str, website_id: str | None, status: JobStatus) -> None:
    if pubsub_client is None:
        return
    try:
        pubsub_client.publish_generation_completed(job_id=job_id, website_id=website_id, status=status.value)
    except Exception:
        logger.warning("Failed to publish completion event", exc_info=True, extra={"job_id": job_id})


@app.get("/health")
async def healthcheck() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse({"status": "ok"})
