import base64
import json
import os

os.environ["ENVIRONMENT"] = "dev"
os.environ.pop("PROJECT_ID", None)

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from services.worker import main  # noqa: E402
from site_composer.content_generation import SiteGenerationService  # noqa: E402
from site_composer.models.job import GenerationRequest, JobStatus  # noqa: E402
from site_composer.sites import SiteManager  # noqa: E402


class FakeGenerator:
    def __init__(self, error=None):
        self.error = error

    def generate(self, prompt, category, *, business_name=None):
        if self.error is not None:
            raise self.error
        return [{"type": "hero", "heading": prompt}, {"type": "footer", "heading": business_name}]


def push_body(payload):
    data = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    return {"message": {"data": data, "messageId": "1"}, "subscription": "projects/p/subscriptions/generation"}


@pytest.fixture
def client():
    return TestClient(main.app)


@pytest.fixture
def service(monkeypatch):
    def install(generator):
        service = SiteGenerationService(generator, SiteManager(main.content_store), main.job_store)
        monkeypatch.setattr(main, "generation_service", service)
        return service

    return install


def test_processes_generation_request(client, service):
    job = service(FakeGenerator()).submit(
        GenerationRequest(owner_id="owner-9", prompt="Mobile bike repair", business_name="Spoke Doctors")
    )

    response = client.post("/v1/worker/process", json=push_body({"job_id": job.id, "owner_id": "owner-9"}))

    assert response.status_code == 200
    website_id = response.json()["website_id"]
    assert main.job_store.get_job(job.id).status == JobStatus.completed
    assert main.content_store.get_website(website_id).name == "Spoke Doctors"


def test_generation_failure_is_reported(client, service):
    job = service(FakeGenerator(error=RuntimeError("model unavailable"))).submit(
        GenerationRequest(owner_id="owner-9", prompt="Bakery")
    )

    response = client.post("/v1/worker/process", json=push_body({"job_id": job.id}))

    assert response.status_code == 500
    assert main.job_store.get_job(job.id).status == JobStatus.failed


def test_unknown_job_is_acknowledged(client, service):
    service(FakeGenerator())

    response = client.post("/v1/worker/process", json=push_body({"job_id": "gen_gone"}))

    assert response.json()["status"] == "ignored"


@pytest.mark.parametrize(
    "body",
    [
        {"message": {}, "subscription": "s"},
        {"message": {"data": "%%%"}, "subscription": "s"},
        push_body({"owner_id": "owner-9"}),
    ],
)
def test_malformed_messages_are_rejected(client, service, body):
    service(FakeGenerator())

    assert client.post("/v1/worker/process", json=body).status_code == 400


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}
