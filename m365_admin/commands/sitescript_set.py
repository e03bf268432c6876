"""spo sitescript set — Updates an existing site script."""

from __future__ import annotations

import argparse
import json
import logging
from typing import Any, Optional

from ..validation import is_valid_guid, parse_int
from .base import SpoCommand, CommandContext, SPO_JSON_ACCEPT

logger = logging.getLogger("m365_admin.commands.sitescript")

UPDATE_SITE_SCRIPT_ENDPOINT = (
    "_api/Microsoft.Sharepoint.Utilities.WebTemplateExtensions."
    "SiteScriptUtility.UpdateSiteScript"
)


class SiteScriptSetCommand(SpoCommand):
    name = "spo sitescript set"
    description = "Updates existing site script"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--id", "-i", required=True, help="Site script ID")
        parser.add_argument("--title", "-t", help="Site script title")
        parser.add_argument("--description", "-d", help="Site script description")
        parser.add_argument("--version", "-v", help="Site script version")
        parser.add_argument("--content", "-c", help="JSON string containing the site script")

    def validate(self, args: argparse.Namespace) -> Optional[str]:
        if not is_valid_guid(args.id):
            return f"{args.id} is not a valid GUID"

        if args.version and parse_int(args.version) is None:
            return f"{args.version} is not a number"

        if args.content:
            try:
                json.loads(args.content)
            except ValueError as e:
                return f"Specified content value is not a valid JSON string. Error: {e}"

        return None

    def build_update_info(self, args: argparse.Namespace) -> dict:
        """Only options that were given (and non-empty) are sent."""
        update_info: dict[str, Any] = {"Id": args.id}
        if args.title:
            update_info["Title"] = args.title
        if args.description:
            update_info["Description"] = args.description
        if args.version:
            update_info["Version"] = parse_int(args.version)
        if args.content:
            update_info["Content"] = args.content
        return update_info

    async def action(self, ctx: CommandContext, args: argparse.Namespace) -> Any:
        spo_url = await self.get_spo_url(ctx)
        digest = await self.get_request_digest(ctx, spo_url)

        logger.info(f"Updating site script {args.id}...")
        res = await ctx.client.post(
            f"{spo_url}/{UPDATE_SITE_SCRIPT_ENDPOINT}",
            headers={
                "X-RequestDigest": digest,
                "content-type": "application/json;charset=utf-8",
                "accept": SPO_JSON_ACCEPT,
            },
            json={"updateInfo": self.build_update_info(args)},
        )
        logger.info("DONE")
        return res
