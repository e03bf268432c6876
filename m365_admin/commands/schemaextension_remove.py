"""graph schemaextension remove — Removes a Microsoft Graph schema extension."""

from __future__ import annotations

import argparse
import logging
from typing import Any

from .base import GraphCommand, CommandContext, GRAPH_JSON_ACCEPT

logger = logging.getLogger("m365_admin.commands.schemaextension")


class SchemaExtensionRemoveCommand(GraphCommand):
    name = "graph schemaextension remove"
    description = "Removes specified Microsoft Graph schema extension"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument("--id", "-i", required=True,
                            help="The unique identifier for the schema extension definition")
        self.add_confirm_argument(parser, "removal of the specified schema extension")

    async def action(self, ctx: CommandContext, args: argparse.Namespace) -> Any:
        if not self.confirm(
            ctx, args,
            f"Are you sure you want to remove the schema extension with ID {args.id}?",
        ):
            return None

        logger.info(f"Removing schema extension {args.id}...")
        await ctx.client.delete(
            self.graph_url(f"schemaExtensions/{args.id}"),
            headers={"accept": GRAPH_JSON_ACCEPT},
        )
        logger.info("DONE")
        return None
