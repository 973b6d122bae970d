from __future__ import annotations

import json
import logging
from typing import Any

from google.cloud import pubsub_v1

logger = logging.getLogger(__name__)


class PubSubClient:
    """Wrapper for Google Cloud Pub/Sub operations."""

    def __init__(
        self,
        project_id: str,
        *,
        requests_topic: str = "site-generation-requests",
        completed_topic: str = "site-generation-completed",
        publisher: pubsub_v1.PublisherClient | None = None,
    ) -> None:
        self.project_id = project_id
        self.requests_topic = requests_topic
        self.completed_topic = completed_topic
        self.publisher = publisher or pubsub_v1.PublisherClient()

    def publish(
        self,
        topic_id: str,
        message: dict[str, Any],
        *,
        attributes: dict[str, str] | None = None,
    ) -> str:
        """Publish a JSON message and wait for its message id."""
        topic_path = self.publisher.topic_path(self.project_id, topic_id)
        data = json.dumps(message).encode("utf-8")
        future = self.publisher.publish(topic_path, data, **(attributes or {}))
        message_id = future.result()

        logger.info(
            "Published message to Pub/Sub",
            extra={"topic_id": topic_id, "message_id": message_id, "attributes": attributes},
        )
        return message_id

    def publish_generation_request(self, *, job_id: str, owner_id: str) -> str:
        return self.publish(
            self.requests_topic,
            {"job_id": job_id, "owner_id": owner_id},
            attributes={"job_id": job_id, "owner_id": owner_id},
        )

    def publish_generation_completed(self, *, job_id: str, website_id: str | None, status: str) -> str:
        return self.publish(
            self.completed_topic,
            {"job_id": job_id, "website_id": website_id, "status": status},
            attributes={"job_id": job_id, "event_type": "site_generation_completed"},
        )


__all__ = ["PubSubClient"]
