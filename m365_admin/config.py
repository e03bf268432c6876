"""
Configuration module for the M365 admin CLI.
Defines API endpoints, retry parameters, and user-level settings.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Will be prompted if empty

@dataclass
class DelegatedAuth:
    """Delegated (device code) authentication configuration."""
    tenant_id: str
    client_id: str

@dataclass
class AuthConfig:
    """Authentication configuration — supports both modes."""
    mode: str = "certificate"  # "certificate" or "delegated"
    certificate: Optional[CertificateAuth] = None
    delegated: Optional[DelegatedAuth] = None


# ─── REST Endpoints ─────────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"

AUTHORITY_BASE_URL = "https://login.microsoftonline.com"

# SharePoint Online hosts across the public and sovereign clouds
SPO_URL_PATTERN = re.compile(
    r"^https://[^/]+\.sharepoint\.(com|us|de|cn)(/.*)?$", re.IGNORECASE
)

REQUEST_TIMEOUT_SECONDS = 60.0
CONNECT_TIMEOUT_SECONDS = 30.0


# ─── Group Logo Upload ──────────────────────────────────────────────────────

# A freshly created group is not immediately ready to accept a photo.
GROUP_LOGO_MAX_ATTEMPTS = 15
GROUP_LOGO_BACKOFF_SECONDS = 0.5   # Multiplied by the failed attempt number


# ─── Request Digest ─────────────────────────────────────────────────────────

FORM_DIGEST_SAFETY_MARGIN_SECONDS = 60


# ─── Local State ────────────────────────────────────────────────────────────

CONFIG_DIR = Path(os.environ.get("M365_ADMIN_HOME", Path.home() / ".m365_admin"))
PROFILES_FILE = CONFIG_DIR / "profiles.json"
CACHE_FILE = CONFIG_DIR / "cache.db"

OUTPUT_MODES = ("json", "text", "csv")


@dataclass
class OutputConfig:
    """Output format settings."""
    mode: str = "text"

    def __post_init__(self):
        if self.mode not in OUTPUT_MODES:
            raise ValueError(f"Unsupported output mode: {self.mode}")


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class CliConfig:
    """Top-level configuration for the CLI."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    spo_url: str = ""
    cache_enabled: bool = True
    verbose: bool = False
    debug: bool = False

    @classmethod
    def from_file(cls, path: str | Path) -> "CliConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "certificate")
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
            if "delegated" in auth_data:
                d = auth_data["delegated"]
                config.auth.delegated = DelegatedAuth(
                    tenant_id=d["tenant_id"],
                    client_id=d["client_id"],
                )
        if "output" in data:
            config.output = OutputConfig(mode=data["output"].get("mode", "text"))
        config.spo_url = data.get("spo_url", "")
        config.cache_enabled = data.get("cache_enabled", True)
        config.verbose = data.get("verbose", False)
        config.debug = data.get("debug", False)
        return config

