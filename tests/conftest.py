from __future__ import annotations

from typing import Callable, Sequence

import pytest

from site_composer.content_store import InMemoryContentStore
from site_composer.domain_provisioning import ProvisioningResult
from site_composer.editing import EditorSession
from site_composer.errors import PersistenceWriteFailed
from site_composer.models.page import Page
from site_composer.models.section import Section
from site_composer.models.website import Website
from site_composer.ordering import SectionEditor
from site_composer.section_registry import defaults_for


class FlakyContentStore(InMemoryContentStore):
    """Rejects page and website writes while ``fail_writes`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.fail_writes = False
        self.page_writes = 0

    def update_page(self, page_id, *, content=None, **fields):
        if self.fail_writes:
            raise PersistenceWriteFailed(f"pages/{page_id}", "backend unavailable")
        self.page_writes += 1
        return super().update_page(page_id, content=content, **fields)

    def update_website(self, website_id, fields):
        if self.fail_writes:
            raise PersistenceWriteFailed(f"websites/{website_id}", "backend unavailable")
        return super().update_website(website_id, fields)


class RecordingProvisioner:
    """Domain provisioner fake that records calls and returns canned results."""

    def __init__(
        self,
        *,
        register: ProvisioningResult | None = None,
        deregister: ProvisioningResult | None = None,
        deregister_raises: bool = False,
    ) -> None:
        self.register_result = register or ProvisioningResult(success=True)
        self.deregister_result = deregister or ProvisioningResult(success=True)
        self.deregister_raises = deregister_raises
        self.registered: list[str] = []
        self.deregistered: list[str] = []

    def register_domain(self, domain: str) -> ProvisioningResult:
        self.registered.append(domain)
        return self.register_result

    def deregister_domain(self, domain: str) -> ProvisioningResult:
        self.deregistered.append(domain)
        if self.deregister_raises:
            raise ConnectionError("provisioning service unreachable")
        return self.deregister_result


@pytest.fixture
def store() -> FlakyContentStore:
    return FlakyContentStore()


@pytest.fixture
def website(store) -> Website:
    return store.create_website(owner_id="owner-1", name="Blue Sky Cleaning", description="Spotless homes")


def section(kind: str, heading: str, **fields) -> Section:
    return defaults_for(kind).model_copy(update={"heading": heading, "id": f"{kind}-{heading}".lower(), **fields})


@pytest.fixture
def make_section() -> Callable[..., Section]:
    return section


@pytest.fixture
def make_page(store, website) -> Callable[..., Page]:
    def factory(sections: Sequence[Section], *, title: str = "Home", slug: str = "home", is_homepage: bool = True) -> Page:
        return store.create_page(
            website_id=website.id,
            title=title,
            slug=slug,
            is_homepage=is_homepage,
            content=list(sections),
        )

    return factory


@pytest.fixture
def three_section_page(make_page) -> Page:
    return make_page([section("hero", "Hero"), section("features", "Features"), section("footer", "Footer")])


@pytest.fixture
def session(store) -> EditorSession:
    return EditorSession(store)


@pytest.fixture
def editor(session) -> SectionEditor:
    return SectionEditor(session)


@pytest.fixture
def provisioner() -> RecordingProvisioner:
    return RecordingProvisioner()
