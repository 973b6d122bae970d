from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Sequence

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    queued = "QUEUED"
    in_progress = "IN_PROGRESS"
    completed = "COMPLETED"
    failed = "FAILED"


class GenerationRequest(BaseModel):
    owner_id: str
    prompt: str
    category: str = "business"
    business_name: str | None = None


class GenerationJob(BaseModel):
    id: str
    status: JobStatus
    progress: float = 0.0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
    request: GenerationRequest
    website_id: str | None = None
    errors: Sequence[str] = Field(default_factory=list)


__all__ = ["GenerationJob", "GenerationRequest", "JobStatus"]
