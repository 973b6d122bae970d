from __future__ import annotations

import threading
import uuid
from datetime import datetime
from typing import Dict, Protocol

from .models.job import GenerationJob, GenerationRequest, JobStatus


class GenerationJobStore(Protocol):
    def create_job(self, request: GenerationRequest) -> GenerationJob:
        ...

    def get_job(self, job_id: str) -> GenerationJob | None:
        ...

    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus | None = None,
        progress: float | None = None,
        website_id: str | None = None,
        errors: list[str] | None = None,
    ) -> GenerationJob:
        ...


def generate_job_id(owner_id: str | None = None) -> str:
    ts = datetime.utcnow().strftime("%Y%m%d%H%M%S")
    suffix = uuid.uuid4().hex[:6]
    if owner_id:
        safe = owner_id.replace("/", "-")
        return f"gen_{safe}_{suffix}"
    return f"gen_{ts}_{suffix}"


class JobStore:
    def __init__(self) -> None:
        self._jobs: Dict[str, GenerationJob] = {}
        self._lock = threading.Lock()

    def create_job(self, request: GenerationRequest) -> GenerationJob:
        with self._lock:
            job = GenerationJob(id=generate_job_id(request.owner_id), status=JobStatus.queued, request=request)
            self._jobs[job.id] = job
            return job.model_copy(deep=True)

    def get_job(self, job_id: str) -> GenerationJob | None:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.model_copy(deep=True) if job else None

    def update_job(
        self,
        job_id: str,
        *,
        status: JobStatus | None = None,
        progress: float | None = None,
        website_id: str | None = None,
        errors: list[str] | None = None,
    ) -> GenerationJob:
        with self._lock:
            job = self._jobs[job_id]
            if status is not None:
                job.status = status
            if progress is not None:
                job.progress = progress
            if website_id is not None:
                job.website_id = website_id
            if errors is not None:
                job.errors = list(errors)
            job.updated_at = datetime.utcnow()
            return job.model_copy(deep=True)


__all__ = ["GenerationJobStore", "JobStore", "generate_job_id"]
