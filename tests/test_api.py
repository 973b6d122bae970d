import os

os.environ["ENVIRONMENT"] = "dev"
os.environ.pop("PROJECT_ID", None)

import pytest  # noqa: E402
from fastapi import HTTPException  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from conftest import RecordingProvisioner  # noqa: E402
from services.api import main  # noqa: E402
from site_composer.content_generation import SiteGenerationService  # noqa: E402
from site_composer.domain_provisioning import ProvisioningResult  # noqa: E402
from site_composer.models.page import PageDraft, Template  # noqa: E402
from site_composer.publishing import PublishWorkflow  # noqa: E402
from site_composer.section_registry import defaults_for  # noqa: E402


@pytest.fixture
def client():
    return TestClient(main.app)


def open_blank_site(client):
    website = client.post("/v1/websites", json={"owner_id": "owner-1"}).json()["website"]
    opened = client.post("/v1/sessions", json={"website_id": website["id"]}).json()
    return website, opened["session_id"], opened["selected_page_id"]


def create_site(name, sections):
    website, pages = main.site_manager.create_site(
        "owner-1", name=name, pages=[PageDraft(title="Home", is_homepage=True, content=sections)]
    )
    return website, pages[0]


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_editor_flow(client):
    _, session_id, page_id = open_blank_site(client)
    base = f"/v1/sessions/{session_id}/pages/{page_id}"

    client.post(f"{base}/sections", json={"kind": "hero"})
    added = client.post(f"{base}/sections", json={"kind": "features"}).json()
    assert [section["type"] for section in added["sections"]] == ["hero", "features"]
    assert added["has_unsaved_changes"] is True
    assert added["editing_index"] == 1

    updated = client.patch(f"{base}/sections/0", json={"field": "heading", "value": "Welcome"})
    assert updated.json()["heading"] == "Welcome"

    moved = client.post(f"{base}/sections/1:move", json={"direction": "up"}).json()
    assert [section["type"] for section in moved["sections"]] == ["features", "hero"]

    toggled = client.post(f"{base}/sections/1:toggle-visibility").json()
    assert toggled["sections"][1]["hidden"] is True

    preview = client.get(f"{base}/preview", params={"viewport": "mobile"})
    assert 'data-section-index="1"' in preview.text
    assert 'data-hidden="true"' in preview.text

    saved = client.post(f"{base}:save").json()
    assert saved["has_unsaved_changes"] is False
    assert [section.heading for section in main.content_store.get_page(page_id).content] == [
        "New Section",
        "Welcome",
    ]


def test_item_and_style_edits(client):
    _, session_id, page_id = open_blank_site(client)
    base = f"/v1/sessions/{session_id}/pages/{page_id}"
    client.post(f"{base}/sections", json={"kind": "stats"})

    client.post(f"{base}/sections/0/items", json={"item": {"value": "24/7", "label": "Support"}})
    client.patch(f"{base}/sections/0/items/0", json={"field": "value", "value": "500+"})
    styled = client.patch(f"{base}/sections/0/style", json={"element": "heading", "font_size": "text-5xl"}).json()
    assert styled["headingFontSize"] == "text-5xl"
    removed = client.delete(f"{base}/sections/0/items/1").json()
    assert [item["value"] for item in removed["items"]] == ["500+"]

    discarded = client.post(f"{base}:discard").json()
    assert discarded["sections"] == []


@pytest.mark.parametrize(
    "method, path, body, error",
    [
        ("post", "/sections", {"kind": "marquee"}, "UnsupportedSectionKind"),
        ("delete", "/sections/5", None, "SectionIndexOutOfRange"),
        ("patch", "/sections/0", {"field": "type", "value": "footer"}, "ImmutableSectionField"),
        ("patch", "/sections/0", {"field": "sparkle", "value": 1}, "UnknownSectionField"),
        ("patch", "/sections/0/style", {"element": "heading", "font_size": "huge"}, "InvalidStyleToken"),
    ],
)
def test_editor_errors_are_bad_requests(client, method, path, body, error):
    _, session_id, page_id = open_blank_site(client)
    base = f"/v1/sessions/{session_id}/pages/{page_id}"
    client.post(f"{base}/sections", json={"kind": "hero"})

    kwargs = {"json": body} if body is not None else {}
    response = getattr(client, method)(f"{base}{path}", **kwargs)

    assert response.status_code == 400
    assert response.json()["error"] == error
    assert client.get(f"{base}/content").json()["sections"][0]["type"] == "hero"


def test_unknown_session_and_website(client):
    assert client.get("/v1/sessions/nope/pages/p/content").status_code == 404
    response = client.post("/v1/sessions", json={"website_id": "site_missing"})
    assert response.status_code == 404
    assert response.json()["error"] == "WebsiteNotFound"


def test_publish_render_and_unpublish(client):
    website, _ = create_site("Harbor Bakery", [defaults_for("hero").model_copy(update={"heading": "Fresh bread daily"})])

    published = client.post(f"/v1/websites/{website.id}:publish", json={"target": "subdomain"}).json()
    assert published["website"]["slug"] == "harbor-bakery"
    assert published["address"] == "harbor-bakery.gettaskly.ai"

    page = client.get("/v1/public/render", params={"host": "harbor-bakery.gettaskly.ai"})
    assert page.status_code == 200
    assert "Fresh bread daily" in page.text
    by_host_header = client.get("/v1/public/render", headers={"host": "harbor-bakery.gettaskly.ai"})
    assert "Fresh bread daily" in by_host_header.text

    unpublished = client.post(f"/v1/websites/{website.id}:unpublish").json()
    assert unpublished["website"]["status"] == "draft"
    assert unpublished["address"] is None
    assert client.get("/v1/public/render", params={"host": "harbor-bakery.gettaskly.ai"}).status_code == 404


def test_publish_custom_domain_errors(client, monkeypatch):
    website, _ = create_site("Corner Florist", [defaults_for("hero")])
    url = f"/v1/websites/{website.id}:publish"

    reserved = client.post(url, json={"target": "custom", "domain": "florist.vercel.app"})
    assert (reserved.status_code, reserved.json()["error"]) == (409, "ReservedDomain")
    invalid = client.post(url, json={"target": "custom", "domain": "florist"})
    assert (invalid.status_code, invalid.json()["error"]) == (400, "InvalidDomainFormat")

    failing = RecordingProvisioner(register=ProvisioningResult(success=False, error="Domain is owned elsewhere"))
    monkeypatch.setattr(
        main, "publish_workflow", PublishWorkflow(main.content_store, failing, base_domain="gettaskly.ai")
    )
    refused = client.post(url, json={"target": "custom", "domain": "cornerflorist.com"})
    assert refused.status_code == 502
    assert refused.json()["detail"] == "Domain is owned elsewhere"
    assert client.get(f"/v1/websites/{website.id}").json()["website"]["status"] == "draft"


def test_templates(client):
    main.content_store.add_template(
        Template(id="tpl-api-cafe", name="Cafe Corner", category="food", content=[defaults_for("hero")])
    )

    listed = client.get("/v1/templates", params={"category": "food"}).json()
    assert [template["id"] for template in listed] == ["tpl-api-cafe"]

    used = client.post("/v1/templates/tpl-api-cafe:use", json={"owner_id": "owner-1"}).json()
    assert used["website"]["template_id"] == "tpl-api-cafe"
    assert client.post("/v1/templates/missing:use", json={}).status_code == 404


def test_delete_site(client):
    website, _, _ = open_blank_site(client)

    assert client.delete(f"/v1/websites/{website['id']}").status_code == 200
    assert client.get(f"/v1/websites/{website['id']}").status_code == 404


def test_deleting_published_site_releases_domain(client, monkeypatch):
    provisioner = RecordingProvisioner()
    monkeypatch.setattr(
        main, "publish_workflow", PublishWorkflow(main.content_store, provisioner, base_domain="gettaskly.ai")
    )
    website, _ = create_site("Tide Pool Swim School", [defaults_for("hero")])
    client.post(f"/v1/websites/{website.id}:publish", json={"target": "custom", "domain": "tidepoolswim.com"})

    assert client.delete(f"/v1/websites/{website.id}").status_code == 200
    assert provisioner.deregistered == ["tidepoolswim.com"]


def test_upload_image(client):
    _, session_id, page_id = open_blank_site(client)
    base = f"/v1/sessions/{session_id}/pages/{page_id}"
    client.post(f"{base}/sections", json={"kind": "hero"})

    response = client.post(
        f"{base}/sections/0/image",
        params={"filename": "storefront.png"},
        content=b"\x89PNG",
        headers={"content-type": "image/png"},
    )

    url = response.json()["url"]
    assert url.endswith(".png")
    assert client.get(f"{base}/content").json()["sections"][0]["image"] == url


class FakeGenerator:
    def generate(self, prompt, category, *, business_name=None):
        return {
            "websiteName": business_name,
            "pages": [{"title": "Home", "isHomepage": True, "sections": [{"type": "hero", "heading": prompt}]}],
        }


def test_generation_job(client, monkeypatch):
    monkeypatch.setattr(
        main, "generation_service", SiteGenerationService(FakeGenerator(), main.site_manager, main.job_store)
    )

    submitted = client.post(
        "/v1/sites:generate",
        json={"owner_id": "owner-1", "prompt": "Dog grooming", "business_name": "Happy Paws"},
    ).json()
    job = client.get(f"/v1/jobs/{submitted['job_id']}").json()

    assert job["status"] == "COMPLETED"
    assert main.content_store.get_website(job["website_id"]).name == "Happy Paws"


def test_generation_requires_configuration(client, monkeypatch):
    monkeypatch.setattr(main, "generation_service", None)

    response = client.post("/v1/sites:generate", json={"owner_id": "owner-1", "prompt": "Dog grooming"})

    assert response.status_code == 503
    assert client.get("/v1/jobs/gen_missing").status_code == 404


def test_idle_sessions_expire():
    now = [100.0]
    registry = main.SessionRegistry(main.content_store, idle_seconds=10, clock=lambda: now[0])
    website = main.content_store.create_website(owner_id="owner-1", name="Idle Site")
    active = registry.open(website)
    idle = registry.open(website)

    now[0] += 8
    registry.get(active)
    now[0] += 8

    assert registry.get(active).session.website_id == website.id
    with pytest.raises(HTTPException) as excinfo:
        registry.get(idle)
    assert excinfo.value.status_code == 404
    assert len(registry) == 1
