"""spo app uninstall — Uninstalls an app from a site."""

from __future__ import annotations

import argparse
import logging
from typing import Any, Optional

from ..validation import is_valid_guid, is_valid_sharepoint_url
from .base import SpoCommand, CommandContext, SPO_JSON_ACCEPT

logger = logging.getLogger("m365_admin.commands.app")

APP_CATALOG_SCOPES = ("tenant", "sitecollection")


class AppUninstallCommand(SpoCommand):
    name = "spo app uninstall"
    description = "Uninstalls an app from the site"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--id", "-i", required=True, help="ID of the app to uninstall")
        parser.add_argument("--site-url", "-s", required=True,
                            help="Absolute URL of the site to uninstall the app from")
        parser.add_argument("--scope", default="tenant",
                            help="Scope of the app catalog: tenant|sitecollection. Default tenant")
        self.add_confirm_argument(parser, "uninstalling the app")

    def validate(self, args: argparse.Namespace) -> Optional[str]:
        if not is_valid_guid(args.id):
            return f"{args.id} is not a valid GUID"
        if not is_valid_sharepoint_url(args.site_url):
            return f"'{args.site_url}' is not a valid SharePoint Online site URL"
        if args.scope not in APP_CATALOG_SCOPES:
            return "Scope must be either 'tenant' or 'sitecollection'"
        return None

    async def action(self, ctx: CommandContext, args: argparse.Namespace) -> Any:
        if not self.confirm(
            ctx, args,
            f"Are you sure you want to uninstall the app {args.id} from site {args.site_url}?",
        ):
            return None

        site_url = args.site_url.rstrip("/")
        logger.info(f"Uninstalling app {args.id} from the site {site_url}...")
        await ctx.client.post(
            f"{site_url}/_api/web/{args.scope}appcatalog/AvailableApps/GetById('{args.id}')/uninstall",
            headers={"accept": SPO_JSON_ACCEPT},
        )
        logger.info("DONE")
        return None
