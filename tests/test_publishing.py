import pytest

from conftest import RecordingProvisioner
from site_composer.domain_provisioning import ProvisioningResult
from site_composer.errors import (
    DomainProvisioningFailed,
    InvalidDomainFormat,
    PersistenceWriteFailed,
    ReservedDomain,
)
from site_composer.models.website import Profile, WebsiteStatus
from site_composer.publishing import (
    CustomDomainTarget,
    PublishAttempt,
    PublishPhase,
    PublishWorkflow,
    SubdomainTarget,
    backfill_business_fields,
    normalize_full_number,
    validate_custom_domain,
)


def workflow_for(store, provisioner):
    return PublishWorkflow(store, provisioner, base_domain="gettaskly.ai")


def test_publish_to_subdomain_derives_slug(store, website, provisioner):
    workflow = workflow_for(store, provisioner)

    published = workflow.publish(website.id, SubdomainTarget())

    persisted = store.get_website(website.id)
    assert persisted.slug == "blue-sky-cleaning"
    assert persisted.status == WebsiteStatus.published
    assert persisted.domain is None
    assert persisted.site_title == "Blue Sky Cleaning"
    assert persisted.binding_is_consistent
    assert workflow.public_address(published) == "blue-sky-cleaning.gettaskly.ai"
    assert provisioner.registered == []
    assert workflow.last_attempt.history == [
        PublishPhase.pending,
        PublishPhase.validated,
        PublishPhase.provisioned,
        PublishPhase.committed,
    ]


def test_provisioning_failure_writes_nothing(store, website):
    provisioner = RecordingProvisioner(register=ProvisioningResult(success=False, error="Domain is owned elsewhere"))
    workflow = workflow_for(store, provisioner)

    with pytest.raises(DomainProvisioningFailed) as excinfo:
        workflow.publish(website.id, CustomDomainTarget(domain="example.com"))

    assert str(excinfo.value) == "Domain is owned elsewhere"
    persisted = store.get_website(website.id)
    assert persisted.status == WebsiteStatus.draft
    assert persisted.domain is None
    assert persisted.slug is None
    assert provisioner.registered == ["example.com"]
    assert workflow.last_attempt.phase == PublishPhase.failed


def test_publish_to_custom_domain_registers_first(store, website, provisioner):
    workflow = workflow_for(store, provisioner)
    workflow.publish(website.id, SubdomainTarget())

    published = workflow.publish(website.id, CustomDomainTarget(domain="  WWW.BlueSky.com "))

    assert provisioner.registered == ["www.bluesky.com"]
    assert published.domain == "www.bluesky.com"
    assert published.slug is None
    assert published.binding_is_consistent
    assert workflow.public_address(published) == "www.bluesky.com"


@pytest.mark.parametrize("domain", ["not a domain", "localhost", "example", "-bad.com", "http://example.com"])
def test_malformed_domains_are_rejected(store, website, provisioner, domain):
    with pytest.raises(InvalidDomainFormat):
        workflow_for(store, provisioner).publish(website.id, CustomDomainTarget(domain=domain))

    assert provisioner.registered == []
    assert store.get_website(website.id).status == WebsiteStatus.draft


@pytest.mark.parametrize("domain", ["shop.gettaskly.ai", "gettaskly.ai", "my-site.vercel.app", "box.internal"])
def test_reserved_domains_are_rejected(store, website, provisioner, domain):
    with pytest.raises(ReservedDomain):
        workflow_for(store, provisioner).publish(website.id, CustomDomainTarget(domain=domain))

    assert provisioner.registered == []


def test_reserved_suffix_matches_whole_labels():
    assert validate_custom_domain("myvercel.app") == "myvercel.app"
    with pytest.raises(ReservedDomain):
        validate_custom_domain("bakery.example.org", reserved_suffixes=["example.org"])


def test_commit_failure_propagates(store, website, provisioner):
    workflow = workflow_for(store, provisioner)
    store.fail_writes = True

    with pytest.raises(PersistenceWriteFailed):
        workflow.publish(website.id, CustomDomainTarget(domain="bluesky.com"))

    assert workflow.last_attempt.history[-2:] == [PublishPhase.provisioned, PublishPhase.failed]
    assert store.get_website(website.id).status == WebsiteStatus.draft


def test_republish_releases_previous_custom_domain(store, website, provisioner):
    workflow = workflow_for(store, provisioner)
    workflow.publish(website.id, CustomDomainTarget(domain="old-bluesky.com"))

    workflow.publish(website.id, SubdomainTarget())

    assert provisioner.deregistered == ["old-bluesky.com"]
    assert store.get_website(website.id).domain is None


def test_unpublish_clears_binding(store, website, provisioner):
    workflow = workflow_for(store, provisioner)
    workflow.publish(website.id, CustomDomainTarget(domain="bluesky.com"))

    unpublished = workflow.unpublish(website.id)

    assert provisioner.deregistered == ["bluesky.com"]
    assert (unpublished.status, unpublished.slug, unpublished.domain) == (WebsiteStatus.draft, None, None)
    assert workflow.public_address(unpublished) is None


@pytest.mark.parametrize(
    "provisioner",
    [
        RecordingProvisioner(deregister=ProvisioningResult(success=False, error="timeout")),
        RecordingProvisioner(deregister_raises=True),
    ],
)
def test_unpublish_is_best_effort_on_deregistration(store, website, provisioner):
    workflow = workflow_for(store, provisioner)
    workflow.publish(website.id, CustomDomainTarget(domain="bluesky.com"))

    unpublished = workflow.unpublish(website.id)

    assert unpublished.status == WebsiteStatus.draft
    assert unpublished.domain is None


def test_unpublish_subdomain_site_skips_provisioner(store, website, provisioner):
    workflow = workflow_for(store, provisioner)
    workflow.publish(website.id, SubdomainTarget())

    workflow.unpublish(website.id)

    assert provisioner.deregistered == []
    assert store.get_website(website.id).slug is None


def test_publish_backfills_business_fields_from_profile(store, website, provisioner):
    store.add_profile(
        Profile(
            id="owner-1",
            business_name="Blue Sky Cleaning Co.",
            whatsapp_country_code="+1",
            whatsapp_number="(555) 123-4567",
        )
    )
    store.update_website(website.id, {"business_description": "We clean"})

    published = workflow_for(store, provisioner).publish(
        website.id, SubdomainTarget(), site_title="Blue Sky", favicon_url=" https://cdn.example.com/icon.png "
    )

    assert published.business_name == "Blue Sky Cleaning Co."
    assert published.business_description == "We clean"
    assert published.whatsapp_full_number == "+15551234567"
    assert published.site_title == "Blue Sky"
    assert published.favicon_url == "https://cdn.example.com/icon.png"


def test_profile_lookup_failure_is_ignored(store, website, provisioner, monkeypatch):
    def broken_profile(owner_id):
        raise RuntimeError("profiles unavailable")

    monkeypatch.setattr(store, "get_profile", broken_profile)

    published = workflow_for(store, provisioner).publish(website.id, SubdomainTarget())

    assert published.status == WebsiteStatus.published
    assert published.business_name is None


def test_empty_slug_falls_back_to_site_id(store, provisioner):
    website = store.create_website(owner_id=None, name="!!!")

    published = workflow_for(store, provisioner).publish(website.id, SubdomainTarget())

    assert published.slug == f"site-{website.id[-8:]}"


def test_backfill_keeps_existing_values(website):
    profile = Profile(id="owner-1", business_name="Other", whatsapp_full_number="+44 7700 900123")
    website = website.model_copy(update={"business_name": "Mine"})

    assert backfill_business_fields(website, profile) == {"whatsapp_full_number": "+447700900123"}
    assert backfill_business_fields(website, None) == {}


@pytest.mark.parametrize(
    "country_code, number, existing, expected",
    [
        ("+44", "7700 900123", None, "+447700900123"),
        (None, None, "+1 (555) 000", "+1555000"),
        ("null", "123", "", "123"),
        (None, None, None, ""),
    ],
)
def test_normalize_full_number(country_code, number, existing, expected):
    assert normalize_full_number(country_code, number, existing) == expected


def test_publish_attempt_rejects_illegal_transitions():
    attempt = PublishAttempt(website_id="site", target=SubdomainTarget())

    with pytest.raises(RuntimeError):
        attempt.advance(PublishPhase.committed)

    attempt.fail("boom")
    assert attempt.error == "boom"
    with pytest.raises(RuntimeError):
        attempt.advance(PublishPhase.validated)
