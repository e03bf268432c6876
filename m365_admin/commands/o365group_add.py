"""
aad o365group add — Creates a Microsoft 365 group.

Optionally uploads a group logo and adds owners and members resolved by
userPrincipalName.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from ..config import GRAPH_BASE_URL, GRAPH_API_VERSION, GROUP_LOGO_MAX_ATTEMPTS, GROUP_LOGO_BACKOFF_SECONDS
from ..rest.client import ApiRequestError
from ..validation import split_list
from .base import GraphCommand, CommandContext, GRAPH_JSON_ACCEPT

logger = logging.getLogger("m365_admin.commands.o365group")

IMAGE_CONTENT_TYPES = {
    ".png": "image/png",
    ".gif": "image/gif",
}


def image_content_type(path: str) -> str:
    return IMAGE_CONTENT_TYPES.get(Path(path).suffix.lower(), "image/jpeg")


class O365GroupAddCommand(GraphCommand):
    name = "aad o365group add"
    description = "Creates Microsoft 365 Group"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--display-name", "-n", required=True,
                            help="Display name for the Microsoft 365 Group")
        parser.add_argument("--description", "-d", required=True,
                            help="Description for the Microsoft 365 Group")
        parser.add_argument("--mail-nickname", "-m", required=True,
                            help="Name to use in the group e-mail (part before the @)")
        parser.add_argument("--owners", help="Comma-separated list of Microsoft 365 Group owners")
        parser.add_argument("--members", help="Comma-separated list of Microsoft 365 Group members")
        parser.add_argument("--is-private",
                            help="Set to true if the Microsoft 365 Group should be private "
                                 "and to false if it should be public (default)")
        parser.add_argument("--logo-path", "-l",
                            help="Local path to the image file to use as group logo")

    def validate(self, args: argparse.Namespace) -> Optional[str]:
        for option in (args.owners, args.members):
            if option:
                for upn in split_list(option):
                    if "@" not in upn:
                        return f"{upn} is not a valid userPrincipalName"

        if args.is_private is not None and args.is_private not in ("true", "false"):
            return f"{args.is_private} is not a valid boolean value"

        if args.logo_path:
            full_path = Path(args.logo_path).resolve()
            if not full_path.exists():
                return f"File '{full_path}' not found"
            if full_path.is_dir():
                return f"Path '{full_path}' points to a directory"

        return None

    async def action(self, ctx: CommandContext, args: argparse.Namespace) -> Any:
        logger.info("Creating Microsoft 365 Group...")

        group = await ctx.client.post(
            self.graph_url("groups"),
            headers={"accept": GRAPH_JSON_ACCEPT},
            json={
                "description": args.description,
                "displayName": args.display_name,
                "groupTypes": ["Unified"],
                "mailEnabled": True,
                "mailNickname": args.mail_nickname,
                "securityEnabled": False,
                "visibility": "Private" if args.is_private == "true" else "Public",
            },
        )

        if args.logo_path:
            await self._set_group_logo(ctx, group["id"], str(Path(args.logo_path).resolve()))
        else:
            logger.debug("Logo path not set. Skipping")

        if args.owners:
            logger.info("Retrieving user information to set group owners...")
            await self._add_users(ctx, group["id"], split_list(args.owners), "owners")
        else:
            logger.debug("Owners not set. Skipping")

        if args.members:
            logger.info("Retrieving user information to set group members...")
            await self._add_users(ctx, group["id"], split_list(args.members), "members")
        else:
            logger.debug("Members not set. Skipping")

        logger.info("DONE")
        return group

    async def _set_group_logo(self, ctx: CommandContext, group_id: str, full_path: str) -> None:
        """
        Upload the group photo.

        A new group takes a while before it accepts a photo, so failures are
        retried with a linearly growing delay; the last error propagates.
        """
        logger.info(f"Setting group logo {full_path}...")
        content = Path(full_path).read_bytes()
        headers = {"content-type": image_content_type(full_path)}

        for attempt in range(1, GROUP_LOGO_MAX_ATTEMPTS + 1):
            try:
                await ctx.client.put(
                    self.graph_url(f"groups/{group_id}/photo/$value"),
                    headers=headers,
                    content=content,
                )
                return
            except (ApiRequestError, httpx.HTTPError) as e:
                if attempt == GROUP_LOGO_MAX_ATTEMPTS:
                    raise
                delay = GROUP_LOGO_BACKOFF_SECONDS * attempt
                logger.debug(
                    f"Setting group logo failed ({e}). "
                    f"Retry {attempt}/{GROUP_LOGO_MAX_ATTEMPTS - 1} in {delay:.1f}s"
                )
                await asyncio.sleep(delay)

    async def _add_users(
        self,
        ctx: CommandContext,
        group_id: str,
        user_names: list[str],
        relation: str,
    ) -> None:
        """Resolve UPNs to user IDs and add them as owners or members."""
        filter_expr = " or ".join(f"userPrincipalName eq '{u}'" for u in user_names)
        res = await ctx.client.get(
            self.graph_url(f"users?$filter={filter_expr}&$select=id"),
            headers={"content-type": "application/json"},
        )

        await asyncio.gather(*[
            ctx.client.post(
                self.graph_url(f"groups/{group_id}/{relation}/$ref"),
                headers={"content-type": "application/json"},
                json={"@odata.id": f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/users/{user['id']}"},
            )
            for user in res.get("value", [])
        ])
