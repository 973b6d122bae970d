import pytest
import requests

from site_composer.domain_provisioning import (
    DOMAIN_IN_USE_MESSAGE,
    InMemoryDomainProvisioner,
    VercelDomainProvisioner,
)


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.headers = {}
        self.response = response or FakeResponse(200, {})
        self.error = error
        self.calls = []

    def _send(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response

    def post(self, url, **kwargs):
        return self._send("POST", url, **kwargs)

    def delete(self, url, **kwargs):
        return self._send("DELETE", url, **kwargs)


def provisioner_with(session):
    return VercelDomainProvisioner(project_id="prj_123", token="secret-token", session=session)


def test_register_posts_domain_with_bearer_token():
    session = FakeSession()

    result = provisioner_with(session).register_domain("bluesky.com")

    assert result.success
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://api.vercel.com/v10/projects/prj_123/domains")
    assert kwargs["json"] == {"name": "bluesky.com"}
    assert session.headers["Authorization"] == "Bearer secret-token"


def test_register_already_on_project_is_success():
    session = FakeSession(FakeResponse(409, {"error": {"code": "domain_already_exists", "message": "exists"}}))

    assert provisioner_with(session).register_domain("bluesky.com").success


def test_register_domain_in_use_elsewhere():
    session = FakeSession(FakeResponse(409, {"error": {"code": "domain_already_in_use", "message": "in use"}}))

    result = provisioner_with(session).register_domain("bluesky.com")

    assert not result.success
    assert result.error == DOMAIN_IN_USE_MESSAGE


def test_register_passes_other_errors_through():
    session = FakeSession(FakeResponse(400, {"error": {"code": "invalid_domain", "message": "Invalid domain name"}}))

    result = provisioner_with(session).register_domain("bluesky.com")

    assert (result.success, result.error) == (False, "Invalid domain name")


def test_register_network_failure():
    session = FakeSession(error=requests.ConnectionError("connection refused"))

    result = provisioner_with(session).register_domain("bluesky.com")

    assert not result.success
    assert "connection refused" in result.error


@pytest.mark.parametrize("status_code", [200, 204, 404])
def test_deregister_treats_missing_domain_as_removed(status_code):
    session = FakeSession(FakeResponse(status_code))

    assert provisioner_with(session).deregister_domain("bluesky.com").success
    assert session.calls[0][:2] == ("DELETE", "https://api.vercel.com/v9/projects/prj_123/domains/bluesky.com")


def test_deregister_failure_reports_error():
    session = FakeSession(FakeResponse(500))

    result = provisioner_with(session).deregister_domain("bluesky.com")

    assert not result.success
    assert result.error == "Failed to remove domain from Vercel"


def test_missing_credentials():
    with pytest.raises(ValueError):
        VercelDomainProvisioner(project_id="prj_123", session=FakeSession())


def test_in_memory_provisioner_is_idempotent():
    provisioner = InMemoryDomainProvisioner()

    assert provisioner.register_domain("bluesky.com").success
    assert provisioner.register_domain("bluesky.com").success
    assert provisioner.is_registered("bluesky.com")
    assert provisioner.deregister_domain("bluesky.com").success
    assert provisioner.deregister_domain("bluesky.com").success
    assert not provisioner.is_registered("bluesky.com")
