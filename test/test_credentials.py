import json

import pytest

from sforg_mcp import config
from sforg_mcp.exceptions import NoOrgConnectedError, OrgNotFoundError
from sforg_mcp.services import credentials


def test_missing_file_is_empty_store():
    assert credentials.load_orgs() == {}


def test_unreadable_file_is_empty_store(creds_dir):
    creds_dir.mkdir()
    config.CREDS_FILE.write_text("{not json", encoding="utf-8")
    assert credentials.load_orgs() == {}


def test_malformed_record_is_skipped(creds_dir, make_org):
    make_org("good")
    raw = json.loads(config.CREDS_FILE.read_text())
    raw["broken"] = {"username": "nobody"}
    config.CREDS_FILE.write_text(json.dumps(raw))

    assert list(credentials.load_orgs()) == ["good"]


def test_file_uses_camel_case_keys(make_org):
    make_org("prod")
    raw = json.loads(config.CREDS_FILE.read_text())
    assert raw["prod"]["accessToken"] == "00Dxx!old"
    assert raw["prod"]["instanceUrl"] == "https://acme.my.salesforce.com"
    assert raw["prod"]["authenticatedAt"] == "2026-10-01T09:00:00Z"


def test_get_org_by_alias(make_org):
    make_org("prod", username="prod@acme.com")
    make_org("dev", username="dev@acme.com")
    alias, creds = credentials.get_org("dev")
    assert alias == "dev"
    assert creds.username == "dev@acme.com"


def test_get_org_prefers_default_then_first(make_org, monkeypatch):
    make_org("prod")
    make_org("dev")
    assert credentials.get_org()[0] == "prod"

    monkeypatch.setattr(config, "DEFAULT_ORG", "dev")
    assert credentials.get_org()[0] == "dev"

    monkeypatch.setattr(config, "DEFAULT_ORG", "gone")
    assert credentials.get_org()[0] == "prod"


def test_get_org_unknown_alias(make_org):
    make_org("prod")
    with pytest.raises(OrgNotFoundError, match='Org "qa" not found'):
        credentials.get_org("qa")


def test_get_org_empty_store():
    with pytest.raises(NoOrgConnectedError, match="sf_org_login"):
        credentials.get_org()


def test_remove_org(make_org):
    make_org("prod")
    make_org("dev")
    assert credentials.remove_org("prod") is True
    assert credentials.remove_org("prod") is False
    assert list(credentials.load_orgs()) == ["dev"]


def test_update_tokens(make_org):
    make_org("dev")
    credentials.update_tokens("dev", "00Dxx!new", "https://acme2.my.salesforce.com")
    creds = credentials.load_orgs()["dev"]
    assert creds.access_token == "00Dxx!new"
    assert creds.instance_url == "https://acme2.my.salesforce.com"
    assert creds.refresh_token == "5Aep-refresh"


def test_update_tokens_for_removed_org_is_noop(make_org):
    make_org("dev")
    credentials.update_tokens("prod", "00Dxx!new")
    assert list(credentials.load_orgs()) == ["dev"]
