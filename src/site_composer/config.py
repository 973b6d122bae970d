from __future__ import annotations

import os
from typing import Mapping

from pydantic import BaseModel

from .public_site import DEFAULT_MAIN_APP_HOSTS
from .publishing import DEFAULT_RESERVED_SUFFIXES


def _split_list(value: str | None, default: tuple[str, ...]) -> tuple[str, ...]:
    if not value:
        return default
    return tuple(item.strip().lower() for item in value.split(",") if item.strip())


class Settings(BaseModel):
    environment: str = "dev"
    project_id: str | None = None
    base_domain: str = "gettaskly.ai"
    main_app_hosts: tuple[str, ...] = tuple(DEFAULT_MAIN_APP_HOSTS)
    reserved_domain_suffixes: tuple[str, ...] = tuple(DEFAULT_RESERVED_SUFFIXES)
    vercel_project_id: str | None = None
    vercel_token: str | None = None
    vertex_location: str = "asia-northeast1"
    vertex_model: str = "gemini-1.5-pro"
    pubsub_topic_generation_requests: str = "site-generation-requests"
    pubsub_topic_generation_completed: str = "site-generation-completed"
    assets_bucket: str | None = None
    session_idle_seconds: float = 3600.0

    @property
    def is_dev(self) -> bool:
        return self.environment == "dev"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        env = os.environ if environ is None else environ
        project_id = env.get("PROJECT_ID")
        return cls(
            environment=env.get("ENVIRONMENT", "dev"),
            project_id=project_id,
            base_domain=env.get("BASE_DOMAIN", "gettaskly.ai").strip().lower(),
            main_app_hosts=_split_list(env.get("MAIN_APP_HOSTS"), tuple(DEFAULT_MAIN_APP_HOSTS)),
            reserved_domain_suffixes=_split_list(
                env.get("RESERVED_DOMAIN_SUFFIXES"), tuple(DEFAULT_RESERVED_SUFFIXES)
            ),
            vercel_project_id=env.get("VERCEL_PROJECT_ID"),
            vercel_token=env.get("VERCEL_TOKEN"),
            vertex_location=env.get("VERTEX_LOCATION", "asia-northeast1"),
            vertex_model=env.get("VERTEX_MODEL", "gemini-1.5-pro"),
            pubsub_topic_generation_requests=env.get("PUBSUB_TOPIC_GENERATION_REQUESTS", "site-generation-requests"),
            pubsub_topic_generation_completed=env.get(
                "PUBSUB_TOPIC_GENERATION_COMPLETED", "site-generation-completed"
            ),
            assets_bucket=env.get("ASSETS_BUCKET") or (f"{project_id}-website-images" if project_id else None),
            session_idle_seconds=float(env.get("SESSION_IDLE_SECONDS", "3600")),
        )


__all__ = ["Settings"]
