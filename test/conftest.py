import json

import pytest

from sforg_mcp import config
from sforg_mcp.services import credentials
from sforg_mcp.services.credentials import OrgCredentials


class FakeResponse:
    """Just enough of requests.Response for the services under test."""

    def __init__(self, status_code=200, payload=None, text=None):
        self.status_code = status_code
        self._payload = payload
        if text is None:
            text = "" if payload is None else json.dumps(payload)
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            return json.loads(self.text)
        return self._payload


@pytest.fixture(autouse=True)
def creds_dir(tmp_path, monkeypatch):
    """Point the credential store at a temporary directory for every test."""
    directory = tmp_path / "creds"
    monkeypatch.setattr(config, "CREDS_DIR", directory)
    monkeypatch.setattr(config, "CREDS_FILE", directory / "credentials.json")
    monkeypatch.setattr(config, "DEFAULT_ORG", None)
    return directory


@pytest.fixture
def make_org():
    def _make(alias="dev", **overrides):
        fields = dict(
            access_token="00Dxx!old",
            refresh_token="5Aep-refresh",
            instance_url="https://acme.my.salesforce.com",
            login_url="https://login.salesforce.com",
            username="admin@acme.com",
            org_id="00D000000000001",
            display_name="Acme Admin",
            authenticated_at="2026-10-01T09:00:00Z",
        )
        fields.update(overrides)
        creds = OrgCredentials(**fields)
        credentials.save_org(alias, creds)
        return creds
    return _make
