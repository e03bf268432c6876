import httpx
import pytest

from m365_admin.__main__ import run_command
from m365_admin.cache.store import ContextCache
from m365_admin.errors import CommandError

SITE = "https://contoso.sharepoint.com/sites/Sales"
JOIN_EMPTY_HUB = "/_api/site/JoinHubSite('00000000-0000-0000-0000-000000000000')"


def _disconnect(parse, *extra):
    return parse("spo", "hubsite", "disconnect", "--url", SITE, *extra)


@pytest.fixture
def sharepoint(tenant):
    tenant.on("POST", f"{SITE}/_api/contextinfo", httpx.Response(200, json={
        "FormDigestValue": "ABC",
        "FormDigestTimeoutSeconds": 1800,
    }))
    tenant.on("POST", f"{SITE}{JOIN_EMPTY_HUB}", httpx.Response(200, json={"odata.null": True}))
    return tenant


@pytest.mark.asyncio
async def test_disconnects_site_with_confirm(ctx, sharepoint, prompt, parse):
    args = _disconnect(parse, "--confirm")
    result = await run_command(args.command, ctx, args)

    assert result is None
    assert prompt.messages == []
    (join,) = sharepoint.find("POST", JOIN_EMPTY_HUB)
    assert join.headers["x-requestdigest"] == "ABC"
    assert join.headers["accept"] == "application/json;odata=nometadata"


@pytest.mark.asyncio
async def test_prompts_before_disconnecting(ctx, sharepoint, prompt, parse):
    args = _disconnect(parse)
    await run_command(args.command, ctx, args)

    assert prompt.messages == [
        f"Are you sure you want to disconnect the site {SITE} from its hub site? [y/N] "
    ]
    assert sharepoint.requests == []


@pytest.mark.asyncio
async def test_disconnects_when_prompt_confirmed(ctx, sharepoint, prompt, parse):
    prompt.answer = "y"

    args = _disconnect(parse)
    await run_command(args.command, ctx, args)

    assert len(sharepoint.find("POST", JOIN_EMPTY_HUB)) == 1


@pytest.mark.asyncio
async def test_reuses_cached_request_digest(ctx, sharepoint, parse, tmp_path):
    ctx.cache = ContextCache(tmp_path / "cache.db")

    for _ in range(2):
        args = _disconnect(parse, "--confirm")
        await run_command(args.command, ctx, args)

    assert len(sharepoint.find("POST", "/_api/contextinfo")) == 1
    assert len(sharepoint.find("POST", JOIN_EMPTY_HUB)) == 2


@pytest.mark.asyncio
async def test_cached_digest_is_not_shared_between_identities(ctx, sharepoint, parse, tmp_path):
    ctx.cache = ContextCache(tmp_path / "cache.db")

    args = _disconnect(parse, "--confirm")
    await run_command(args.command, ctx, args)
    ctx.cache_scope = "tenant-1:client-2:delegated"
    await run_command(args.command, ctx, args)

    assert len(sharepoint.find("POST", "/_api/contextinfo")) == 2


@pytest.mark.asyncio
async def test_surfaces_sharepoint_error(ctx, tenant, parse):
    tenant.on("POST", "/_api/contextinfo", httpx.Response(200, json={"FormDigestValue": "ABC"}))
    tenant.on("POST", JOIN_EMPTY_HUB, httpx.Response(404, json={
        "odata.error": {
            "code": "-1, Microsoft.SharePoint.Client.ResourceNotFoundException",
            "message": {
                "lang": "en-US",
                "value": "Exception of type 'Microsoft.SharePoint.Client.ResourceNotFoundException' was thrown.",
            },
        }
    }))

    args = _disconnect(parse, "--confirm")
    with pytest.raises(CommandError) as excinfo:
        await run_command(args.command, ctx, args)

    assert excinfo.value.message == (
        "Exception of type 'Microsoft.SharePoint.Client.ResourceNotFoundException' was thrown."
    )


def test_validation_rejects_non_sharepoint_url(parse):
    args = parse("spo", "hubsite", "disconnect", "--url", "abc")
    assert args.command.validate(args) == "'abc' is not a valid SharePoint Online site URL"


def test_validation_accepts_sharepoint_url(parse):
    args = _disconnect(parse)
    assert args.command.validate(args) is None
