"""spo hubsite disconnect — Disconnects a site from its hub site."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Optional

from ..validation import is_valid_sharepoint_url
from .base import SpoCommand, CommandContext, SPO_JSON_ACCEPT

logger = logging.getLogger("m365_admin.commands.hubsite")

# Joining the empty hub site detaches the site from its current hub
NO_HUB_SITE_ID = "00000000-0000-0000-0000-000000000000"


class HubSiteDisconnectCommand(SpoCommand):
    name = "spo hubsite disconnect"
    description = "Disconnects the specified site collection from its hub site"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--url", "-u", required=True,
                            help="URL of the site collection to disconnect from its hub site")
        self.add_confirm_argument(parser, "disconnecting the site from its hub site")

    def validate(self, args: argparse.Namespace) -> Optional[str]:
        if not is_valid_sharepoint_url(args.url):
            return f"'{args.url}' is not a valid SharePoint Online site URL"
        return None

    async def action(self, ctx: CommandContext, args: argparse.Namespace) -> Any:
        if not self.confirm(
            ctx, args,
            f"Are you sure you want to disconnect the site {args.url} from its hub site?",
        ):
            return None

        site_url = args.url.rstrip("/")
        digest = await self.get_request_digest(ctx, site_url)

        logger.info(f"Disconnecting site collection {site_url} from its hub site...")
        await ctx.client.post(
            f"{site_url}/_api/site/JoinHubSite('{NO_HUB_SITE_ID}')",
            headers={
                "X-RequestDigest": digest,
                "accept": SPO_JSON_ACCEPT,
            },
        )
        logger.info("DONE")
        return None
