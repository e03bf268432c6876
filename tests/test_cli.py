import json
import sqlite3

import httpx
import pytest

import m365_admin.__main__ as cli
from m365_admin.commands import AppUninstallCommand, SiteScriptSetCommand
from m365_admin.cache.store import ContextCache
from m365_admin.profiles import ConnectionProfile, ProfileStore
from m365_admin.rest.client import RestClient

from conftest import FakeTenant

SCRIPT_ID = "449c0c6d-5380-4df2-b84b-622e0ac8ec24"


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    monkeypatch.setattr("m365_admin.config.PROFILES_FILE", tmp_path / "profiles.json")
    monkeypatch.setattr("m365_admin.config.CACHE_FILE", tmp_path / "cache.db")
    monkeypatch.setattr(cli, "configure_logging", lambda verbose, debug: None)
    return tmp_path


class FakeAuthenticator:
    def __init__(self, config):
        self.config = config

    async def get_token(self, resource):
        return "token"


@pytest.fixture
def sharepoint(monkeypatch):
    tenant = FakeTenant()
    tenant.on("POST", "/_api/contextinfo", httpx.Response(200, json={"FormDigestValue": "ABC"}))
    tenant.on("POST", "SiteScriptUtility.UpdateSiteScript",
              httpx.Response(200, json={"Id": SCRIPT_ID, "Title": "Contoso", "Version": 1}))

    def client_factory(token_provider, guardian):
        return RestClient(token_provider, guardian, transport=httpx.MockTransport(tenant.handle))

    monkeypatch.setattr(cli, "Authenticator", FakeAuthenticator)
    monkeypatch.setattr(cli, "RestClient", client_factory)
    return tenant


def test_parser_maps_command_paths_to_commands():
    parser = cli.build_parser()

    args = parser.parse_args(["spo", "app", "uninstall", "--id", "x", "--site-url", "y", "--output", "json"])
    assert isinstance(args.command, AppUninstallCommand)
    assert args.scope == "tenant"
    assert args.output == "json"

    args = parser.parse_args(["spo", "sitescript", "set", "-i", SCRIPT_ID, "-v", "2"])
    assert isinstance(args.command, SiteScriptSetCommand)
    assert args.version == "2"


def test_parser_without_verb_has_no_command():
    args = cli.build_parser().parse_args(["spo", "app"])
    assert args.command is None


def test_build_config_uses_default_profile():
    ProfileStore.load().add(ConnectionProfile(
        name="contoso", tenant_id="tenant-1", client_id="client-1",
        cert_path="/certs/contoso.txt", spo_url="https://contoso.sharepoint.com",
    ))
    args = cli.build_parser().parse_args(["spo", "hubsite", "disconnect", "--url", "https://contoso.sharepoint.com/sites/a"])

    config, profile = cli.build_config(args)

    assert profile.name == "contoso"
    assert config.auth.mode == "certificate"
    assert config.auth.certificate.tenant_id == "tenant-1"
    assert config.auth.certificate.certificate_path == "/certs/contoso.txt"
    assert config.output.mode == "text"


def test_build_config_flags_override_profile():
    ProfileStore.load().add(ConnectionProfile(name="contoso", tenant_id="tenant-1", client_id="client-1"))
    args = cli.build_parser().parse_args([
        "graph", "schemaextension", "remove", "--id", "ext",
        "--profile", "contoso", "--client-id", "client-2", "--delegated", "--no-cache", "-o", "csv",
    ])

    config, _ = cli.build_config(args)

    assert config.auth.mode == "delegated"
    assert config.auth.delegated.tenant_id == "tenant-1"
    assert config.auth.delegated.client_id == "client-2"
    assert config.cache_enabled is False
    assert config.output.mode == "csv"


def test_build_config_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "auth": {"mode": "certificate", "certificate": {
            "tenant_id": "tenant-3", "client_id": "client-3", "certificate_path": "/certs/c.txt",
        }},
        "output": {"mode": "json"},
        "spo_url": "https://fabrikam.sharepoint.com",
    }), encoding="utf-8")
    args = cli.build_parser().parse_args(["spo", "sitescript", "set", "--id", SCRIPT_ID, "--config", str(path)])

    config, profile = cli.build_config(args)

    assert profile is None
    assert config.auth.certificate.client_id == "client-3"
    assert config.spo_url == "https://fabrikam.sharepoint.com"
    assert config.output.mode == "json"


def test_build_config_without_credentials_fails():
    args = cli.build_parser().parse_args(["graph", "schemaextension", "remove", "--id", "ext"])
    with pytest.raises(cli.CommandError, match="No tenant credentials found"):
        cli.build_config(args)


def test_build_config_unknown_profile_fails():
    args = cli.build_parser().parse_args(["graph", "schemaextension", "remove", "--id", "ext", "-p", "nope"])
    with pytest.raises(cli.CommandError, match="Profile 'nope' not found"):
        cli.build_config(args)


@pytest.mark.asyncio
async def test_main_prints_validation_error(sharepoint, capsys):
    code = await cli.main_async([
        "spo", "hubsite", "disconnect", "--url", "abc",
        "--tenant-id", "t", "--client-id", "c",
    ])

    assert code == 1
    assert capsys.readouterr().err.strip() == "Error: 'abc' is not a valid SharePoint Online site URL"
    assert sharepoint.requests == []


@pytest.mark.asyncio
async def test_main_runs_command_and_prints_json(sharepoint, capsys):
    code = await cli.main_async([
        "spo", "sitescript", "set", "--id", SCRIPT_ID, "--title", "Contoso",
        "--tenant-id", "t", "--client-id", "c",
        "--spo-url", "https://contoso.sharepoint.com/", "--output", "json",
    ])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"Id": SCRIPT_ID, "Title": "Contoso", "Version": 1}
    (update,) = sharepoint.find("POST", "UpdateSiteScript")
    assert str(update.url).startswith("https://contoso.sharepoint.com/_api/")


@pytest.mark.asyncio
async def test_main_prints_api_error(sharepoint, capsys):
    sharepoint._routes.insert(0, ("POST", "UpdateSiteScript", httpx.Response(403, json={
        "odata.error": {"message": {"value": "Access denied."}}
    })))

    code = await cli.main_async([
        "spo", "sitescript", "set", "--id", SCRIPT_ID, "--title", "Contoso",
        "--tenant-id", "t", "--client-id", "c", "--spo-url", "https://contoso.sharepoint.com",
    ])

    assert code == 1
    assert capsys.readouterr().err.strip() == "Error: Access denied."


@pytest.mark.asyncio
async def test_profile_commands(capsys, isolated_home):
    assert await cli.main_async([
        "profile", "add", "contoso", "--tenant-id", "tenant-1", "--client-id", "client-1",
        "--spo-url", "https://contoso.sharepoint.com/",
    ]) == 0
    assert ProfileStore.load().get("contoso").spo_url == "https://contoso.sharepoint.com"

    assert await cli.main_async(["profile", "list"]) == 0
    assert "contoso" in capsys.readouterr().out

    assert await cli.main_async(["profile", "set-default", "missing"]) == 1
    assert await cli.main_async(["profile", "remove", "contoso"]) == 0
    assert ProfileStore.load().profiles == {}


@pytest.mark.asyncio
async def test_main_reports_bad_options_before_missing_credentials(capsys):
    code = await cli.main_async(["spo", "sitescript", "set", "--id", "not-a-guid"])

    assert code == 1
    assert capsys.readouterr().err.strip() == "Error: not-a-guid is not a valid GUID"


@pytest.mark.asyncio
@pytest.mark.parametrize("content, message", [
    ("{not json", "Expecting property name"),
    (json.dumps({"auth": {"certificate": {"client_id": "c"}}}), "tenant_id"),
    (json.dumps({"output": {"mode": "xml"}}), "Unsupported output mode: xml"),
])
async def test_main_reports_invalid_config_file(tmp_path, capsys, content, message):
    path = tmp_path / "config.json"
    path.write_text(content, encoding="utf-8")

    code = await cli.main_async(["spo", "sitescript", "set", "--id", SCRIPT_ID, "--config", str(path)])

    assert code == 1
    err = capsys.readouterr().err
    assert err.startswith(f"Error: Invalid configuration file '{path}'")
    assert message in err


@pytest.mark.asyncio
async def test_main_reports_unusable_cache(sharepoint, tmp_path, monkeypatch, capsys):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("", encoding="utf-8")
    monkeypatch.setattr("m365_admin.config.CACHE_FILE", blocker / "cache.db")

    code = await cli.main_async([
        "spo", "sitescript", "set", "--id", SCRIPT_ID, "--title", "Contoso",
        "--tenant-id", "t", "--client-id", "c", "--spo-url", "https://contoso.sharepoint.com",
    ])

    assert code == 1
    assert "Use --no-cache to run without it" in capsys.readouterr().err
    assert sharepoint.requests == []


def test_open_cache_drops_expired_entries(isolated_home):
    ContextCache(isolated_home / "cache.db").put("digest:old", "OLD", ttl_seconds=-1)

    cache = cli.open_cache()

    with sqlite3.connect(str(cache.db_path)) as conn:
        assert conn.execute("SELECT COUNT(*) FROM context_entries").fetchone() == (0,)
