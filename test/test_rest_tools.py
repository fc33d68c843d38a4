import json

import pytest

from conftest import FakeResponse
from sforg_mcp.mcp.tools import apex_tools, data_tools, org_tools
from sforg_mcp.services import credentials
from sforg_mcp.services.credentials import OrgCredentials


@pytest.fixture
def api(monkeypatch):
    """Replace sf_api in the tool modules with a recorder returning ``api.result``."""
    class Recorder:
        result = {"ok": True}

        def __init__(self):
            self.calls = []

        def __call__(self, org, path, method="GET", body=None, params=None, headers=None):
            self.calls.append({"org": org, "path": path, "method": method, "body": body, "params": params})
            return self.result

    recorder = Recorder()
    monkeypatch.setattr(data_tools, "sf_api", recorder)
    monkeypatch.setattr(apex_tools, "sf_api", recorder)
    return recorder


@pytest.fixture
def raw_api(monkeypatch):
    calls = []
    responses = []

    def fake(org, full_path, method="GET", body=None, params=None, headers=None):
        calls.append({"org": org, "path": full_path, "method": method, "body": body})
        return responses.pop(0)

    fake.calls = calls
    fake.responses = responses
    for module in (data_tools, apex_tools, org_tools):
        monkeypatch.setattr(module, "sf_raw_api", fake)
    return fake


def test_query(api):
    out = json.loads(data_tools.sf_query("SELECT Id FROM Account", org="dev"))
    assert out == {"ok": True}
    assert api.calls == [{"org": "dev", "path": "/query", "method": "GET", "body": None,
                          "params": {"q": "SELECT Id FROM Account"}}]


def test_tooling_query(api):
    data_tools.sf_query("SELECT Id FROM ApexClass", tooling=True)
    assert api.calls[0]["path"] == "/tooling/query"
    assert api.calls[0]["org"] is None


def test_search_describe_objects_limits(api):
    data_tools.sf_search("FIND {Acme}")
    data_tools.sf_describe("Account")
    data_tools.sf_list_objects()
    data_tools.sf_org_limits()
    assert [c["path"] for c in api.calls] == ["/search", "/sobjects/Account/describe", "/sobjects", "/limits"]
    assert api.calls[0]["params"] == {"q": "FIND {Acme}"}


def test_create_record(api):
    api.result = {"id": "001xx", "success": True, "errors": []}
    out = json.loads(data_tools.sf_create_record("Account", {"Name": "Acme"}))
    assert out["id"] == "001xx"
    assert api.calls[0]["method"] == "POST"
    assert api.calls[0]["path"] == "/sobjects/Account"
    assert api.calls[0]["body"] == {"Name": "Acme"}


def test_update_and_delete_record(api):
    assert json.loads(data_tools.sf_update_record("Account", "001xx", {"Name": "Acme 2"})) == {
        "success": True, "id": "001xx"}
    assert json.loads(data_tools.sf_delete_record("Account", "001xx")) == {
        "success": True, "deleted": "001xx"}
    assert [(c["method"], c["path"]) for c in api.calls] == [
        ("PATCH", "/sobjects/Account/001xx"), ("DELETE", "/sobjects/Account/001xx")]


def test_get_record_with_fields(api):
    data_tools.sf_get_record("Contact", "003xx", fields="Id,Email")
    data_tools.sf_get_record("Contact", "003xx")
    assert api.calls[0]["params"] == {"fields": "Id,Email"}
    assert api.calls[1]["params"] is None


def test_rest_api_passes_body_through(raw_api):
    raw_api.responses.append(FakeResponse(404, [{"errorCode": "NOT_FOUND"}]))
    out = data_tools.sf_rest_api("services/apexrest/orders", method="post", body={"qty": 1})
    assert json.loads(out) == [{"errorCode": "NOT_FOUND"}]
    assert raw_api.calls[0] == {"org": None, "path": "/services/apexrest/orders", "method": "POST",
                                "body": {"qty": 1}}


def test_rest_api_returns_plain_text(raw_api):
    raw_api.responses.append(FakeResponse(200, text="pong"))
    assert data_tools.sf_rest_api("/services/apexrest/ping") == "pong"


def test_rest_api_rejects_unknown_method(raw_api):
    with pytest.raises(ValueError, match="Unsupported HTTP method"):
        data_tools.sf_rest_api("/services/data", method="TRACE")


def test_apex_run(api):
    apex_tools.sf_apex_run("System.debug('hi');")
    assert api.calls[0]["path"] == "/tooling/executeAnonymous"
    assert api.calls[0]["params"] == {"anonymousBody": "System.debug('hi');"}


def test_apex_test_by_class(api):
    apex_tools.sf_apex_test(class_names="FooTest, BarTest")
    assert api.calls[0]["path"] == "/tooling/runTestsSynchronous"
    assert api.calls[0]["body"] == {"tests": [{"className": "FooTest"}, {"className": "BarTest"}]}


def test_apex_test_by_level(api):
    apex_tools.sf_apex_test(test_level="RunLocalTests")
    assert api.calls[0]["path"] == "/tooling/runTestsAsynchronous"
    assert api.calls[0]["body"] == {"testLevel": "RunLocalTests"}


def test_apex_test_needs_input(api):
    assert json.loads(apex_tools.sf_apex_test()) == {"error": "Provide class_names or test_level"}
    assert api.calls == []


def test_apex_log_list(api):
    apex_tools.sf_apex_log()
    assert api.calls[0]["path"] == "/tooling/query"
    assert "FROM ApexLog ORDER BY StartTime DESC LIMIT 20" in api.calls[0]["params"]["q"]


def test_apex_log_get(raw_api):
    raw_api.responses.append(FakeResponse(200, text="62.0 APEX_CODE,DEBUG\n..."))
    assert apex_tools.sf_apex_log("get", log_id="07Lxx").startswith("62.0 APEX_CODE")
    assert raw_api.calls[0]["path"] == "/services/data/v62.0/sobjects/ApexLog/07Lxx/Body"


def test_list_metadata(api):
    apex_tools.sf_list_metadata("ApexTrigger")
    assert api.calls[0]["params"] == {"q": "SELECT Id, Name, NamespacePrefix FROM ApexTrigger ORDER BY Name"}
    with pytest.raises(ValueError):
        apex_tools.sf_list_metadata("ApexClass; DELETE")


def test_org_login(monkeypatch):
    seen = {}

    def fake_login(alias, login_url):
        seen.update(alias=alias, login_url=login_url)
        return OrgCredentials(access_token="t", instance_url="https://acme.my.salesforce.com",
                              username="admin@acme.com", org_id="00D1")

    monkeypatch.setattr(org_tools, "oauth_login", fake_login)
    out = json.loads(org_tools.sf_org_login("prod"))
    assert seen == {"alias": "prod", "login_url": "https://login.salesforce.com"}
    assert out == {"success": True, "alias": "prod", "username": "admin@acme.com",
                   "instanceUrl": "https://acme.my.salesforce.com", "orgId": "00D1"}


def test_org_list_and_logout(make_org):
    assert "No orgs connected" in org_tools.sf_org_list()
    make_org("dev")
    listed = json.loads(org_tools.sf_org_list())
    assert listed == [{"alias": "dev", "username": "admin@acme.com",
                       "instanceUrl": "https://acme.my.salesforce.com", "orgId": "00D000000000001",
                       "authenticatedAt": "2026-10-01T09:00:00Z"}]
    assert "accessToken" not in listed[0]

    assert json.loads(org_tools.sf_org_logout("dev")) == {"success": True, "removed": "dev"}
    assert json.loads(org_tools.sf_org_logout("dev")) == {"error": 'Org "dev" not found'}
    assert credentials.load_orgs() == {}


def test_org_display(make_org, raw_api):
    make_org("dev")
    raw_api.responses.append(FakeResponse(200, [{"version": "61.0"}, {"version": "62.0"}]))
    out = json.loads(org_tools.sf_org_display())
    assert out["alias"] == "dev"
    assert out["latestApiVersion"] == "62.0"
    assert raw_api.calls[0]["path"] == "/services/data"


def test_org_display_without_api(make_org, raw_api):
    make_org("dev")
    raw_api.responses.append(FakeResponse(500, text="down"))
    out = json.loads(org_tools.sf_org_display("dev"))
    assert out["username"] == "admin@acme.com"
    assert "latestApiVersion" not in out
