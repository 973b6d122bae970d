from __future__ import annotations

import logging
from datetime import datetime

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from .job_store import generate_job_id
from .models.job import GenerationJob, GenerationRequest, JobStatus

logger = logging.getLogger(__name__)


class FirestoreJobStore:
    """Firestore-backed store of site generation jobs."""

    COLLECTION_NAME = "generation_jobs"

    def __init__(self, project_id: str | None = None, *, client: firestore.Client | None = None) -> None:
        self._db = client or firestore.Client(project=project_id)
        self._collection = self._db.collection(self.COLLECTION_NAME)

    def create_job(self, request: GenerationRequest) -> GenerationJob:
        now = datetime.utcnow()
        job = GenerationJob(
            id=generate_job_id(request.owner_id),
            status=JobStatus.queued,
            request=request,
            created_at=now,
            updated_at=now,
        )
        self._collection.document(job.id).set(self._to_firestore_dict(job))
        logger.info(
            "Created generation job",
            extra={"job_id": job.id, "owner_id": request.owner_id, "category": request.category},
        )
        return job

    def get_job(self, job_id: str) -> GenerationJob | None:
        doc = self._collection.document(job_id).get()
        if not doc.exists:
            return None
        return self._from_firestore_dict(doc.id, doc.to_dict())

    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus | None = None,
        progress: float | None = None,
        website_id: str | None = None,
        errors: list[str] | None = None,
    ) -> GenerationJob:
        doc_ref = self._collection.document(job_id)
        update_data: dict = {"updated_at": datetime.utcnow()}
        if status is not None:
            update_data["status"] = status.value
        if progress is not None:
            update_data["progress"] = progress
        if website_id is not None:
            update_data["website_id"] = website_id
        if errors is not None:
            update_data["errors"] = errors
        doc_ref.update(update_data)

        logger.info(
            "Updated generation job",
            extra={"job_id": job_id, "status": status.value if status else None, "progress": progress},
        )
        updated_doc = doc_ref.get()
        return self._from_firestore_dict(updated_doc.id, updated_doc.to_dict())

    def list_jobs(self, *, owner_id: str | None = None, status: JobStatus | None = None, limit: int = 50) -> list[GenerationJob]:
        query = self._collection
        if owner_id is not None:
            query = query.where(filter=FieldFilter("request.owner_id", "==", owner_id))
        if status is not None:
            query = query.where(filter=FieldFilter("status", "==", status.value))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING).limit(limit)
        return [self._from_firestore_dict(doc.id, doc.to_dict()) for doc in query.stream()]

    def _to_firestore_dict(self, job: GenerationJob) -> dict:
        return {
            "status": job.status.value,
            "progress": job.progress,
            "request": job.request.model_dump(),
            "website_id": job.website_id,
            "created_at": job.created_at,
            "updated_at": job.updated_at,
            "errors": list(job.errors),
        }

    def _from_firestore_dict(self, job_id: str, data: dict) -> GenerationJob:
        return GenerationJob(
            id=job_id,
            status=JobStatus(data["status"]),
            progress=data.get("progress", 0.0),
            request=GenerationRequest.model_validate(data["request"]),
            website_id=data.get("website_id"),
            created_at=data["created_at"],
            updated_at=data["updated_at"],
            errors=data.get("errors", []),
        )


__all__ = ["FirestoreJobStore"]
