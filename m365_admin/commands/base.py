"""
Base command classes — Shared plumbing for every CLI subcommand.
Defines the contract a command fulfils and the Graph/SharePoint helpers it may need.
"""

from __future__ import annotations

import argparse
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..cache.store import ContextCache
from ..config import GRAPH_BASE_URL, GRAPH_API_VERSION, FORM_DIGEST_SAFETY_MARGIN_SECONDS
from ..profiles import ConnectionProfile
from ..rest.client import RestClient
from ..safety.guardian import SafetyGuardian

logger = logging.getLogger("m365_admin.commands")

GRAPH_JSON_ACCEPT = "application/json;odata.metadata=none"
SPO_JSON_ACCEPT = "application/json;odata=nometadata"


@dataclass
class CommandContext:
    """Everything a command needs to talk to the tenant."""
    client: RestClient
    guardian: SafetyGuardian
    cache: Optional[ContextCache] = None
    profile: Optional[ConnectionProfile] = None
    tenant_id: str = ""
    spo_url: str = ""
    cache_scope: str = ""              # tenant:client:auth mode the cached values belong to


class BaseCommand(ABC):
    """
    Abstract base class for all commands.

    Subclasses declare their options in add_arguments(), reject bad input in
    validate() and do the work in action(). The CLI guarantees action() only
    runs after validate() returned None.
    """

    name: str = "base"
    description: str = "Base command"

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Register command-specific options."""

    def validate(self, args: argparse.Namespace) -> Optional[str]:
        """Return an error message for invalid options, None when valid."""
        return None

    @abstractmethod
    async def action(self, ctx: CommandContext, args: argparse.Namespace) -> Any:
        """
        Run the command.
        A non-None return value is printed in the requested output mode.
        """
        raise NotImplementedError

    @staticmethod
    def add_confirm_argument(parser: argparse.ArgumentParser, what: str) -> None:
        parser.add_argument(
            "--confirm",
            action="store_true",
            help=f"Don't prompt for confirming {what}",
        )

    @staticmethod
    def confirm(ctx: CommandContext, args: argparse.Namespace, message: str) -> bool:
        """Prompt before a destructive call unless --confirm was passed."""
        return ctx.guardian.confirm(message, assume_yes=getattr(args, "confirm", False))


class GraphCommand(BaseCommand):
    """Command that calls Microsoft Graph."""

    resource: str = GRAPH_BASE_URL

    def graph_url(self, path: str) -> str:
        return f"{self.resource}/{GRAPH_API_VERSION}/{path.lstrip('/')}"


class SpoCommand(BaseCommand):
    """Command that calls SharePoint Online REST endpoints."""

    async def get_spo_url(self, ctx: CommandContext) -> str:
        """
        Resolve the SharePoint tenant root URL.

        Order: explicit (--spo-url / config), profile, cache, and finally
        discovery through the Graph root site.
        """
        if ctx.spo_url:
            return ctx.spo_url

        if ctx.profile and ctx.profile.spo_url:
            ctx.spo_url = ctx.profile.spo_url.rstrip("/")
            return ctx.spo_url

        cache_key = f"spo_url:{ctx.cache_scope}"
        if ctx.cache:
            cached = ctx.cache.get(cache_key)
            if cached:
                logger.debug(f"Using cached SharePoint URL {cached}")
                ctx.spo_url = cached
                return cached

        logger.debug("SharePoint URL not set. Retrieving it from the root site...")
        res = await ctx.client.get(
            f"{GRAPH_BASE_URL}/{GRAPH_API_VERSION}/sites/root?$select=webUrl",
            headers={"accept": GRAPH_JSON_ACCEPT},
        )
        ctx.spo_url = res["webUrl"].rstrip("/")
        logger.debug(f"Retrieved SharePoint URL {ctx.spo_url}")

        if ctx.cache:
            ctx.cache.put(cache_key, ctx.spo_url)
        return ctx.spo_url

    async def get_request_digest(self, ctx: CommandContext, site_url: str) -> str:
        """Return a form digest for write calls against the site."""
        site_url = site_url.rstrip("/")
        cache_key = f"digest:{ctx.cache_scope}:{site_url}"
        if ctx.cache:
            cached = ctx.cache.get(cache_key)
            if cached:
                return cached

        logger.debug(f"Retrieving request digest for {site_url}...")
        res = await ctx.client.post(
            f"{site_url}/_api/contextinfo",
            headers={"accept": SPO_JSON_ACCEPT},
        )
        digest = res["FormDigestValue"]

        if ctx.cache:
            timeout = int(res.get("FormDigestTimeoutSeconds", 0))
            ttl = timeout - FORM_DIGEST_SAFETY_MARGIN_SECONDS
            if ttl > 0:
                ctx.cache.put(cache_key, digest, ttl_seconds=ttl)
        return digest
