"""
Connection Profile Manager — Named connections for multi-tenant administration.

Profiles are stored in:
    ~/.m365_admin/profiles.json

A profile pins the app registration (tenant_id, client_id, cert_path) used
to sign in and, optionally, the SharePoint tenant root so SPO commands can
skip discovery. Select one with `--profile <name>`; names are case-insensitive.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

from . import config

logger = logging.getLogger("m365_admin.profiles")


@dataclass
class ConnectionProfile:
    """A single named connection profile."""
    name: str
    tenant_id: str                     # Entra tenant ID
    client_id: str                     # App registration client ID
    cert_path: str = "./base64.txt"    # Base64-encoded PFX
    spo_url: str = ""                  # SharePoint tenant root, discovered if empty
    display_name: str = ""

    @classmethod
    def from_dict(cls, name: str, data: dict[str, Any]) -> "ConnectionProfile":
        known = {f.name for f in fields(cls)} - {"name"}
        return cls(name=name, **{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        del data["name"]
        return data

    def resolve_cert_path(self) -> str:
        """Return absolute cert path, resolving ~ and relative paths."""
        p = Path(self.cert_path).expanduser()
        if not p.is_absolute():
            p = Path.cwd() / p
        return str(p)


@dataclass
class ProfileStore:
    """The profiles file, loaded into memory. Every mutation is written back."""
    profiles: dict[str, ConnectionProfile] = field(default_factory=dict)
    default_profile: str = ""
    path: Path = field(default_factory=lambda: config.PROFILES_FILE)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "ProfileStore":
        """Read the profiles file; a missing or unreadable file yields an empty store."""
        store = cls(path=Path(path) if path else config.PROFILES_FILE)
        if not store.path.exists():
            return store
        try:
            data = json.loads(store.path.read_text(encoding="utf-8"))
            store.profiles = {
                name: ConnectionProfile.from_dict(name, pdata)
                for name, pdata in data.get("profiles", {}).items()
            }
            store.default_profile = data.get("default_profile", "")
        except (json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.warning(f"Ignoring unreadable profiles file {store.path}: {e}")
            return cls(path=store.path)
        return store

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "default_profile": self.default_profile,
            "profiles": {name: p.to_dict() for name, p in self.profiles.items()},
        }
        self.path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")

    def _key(self, name: str) -> Optional[str]:
        wanted = name.lower()
        return next((k for k in self.profiles if k.lower() == wanted), None)

    def add(self, profile: ConnectionProfile, set_default: bool = False) -> None:
        """Add a profile, replacing any with the same name."""
        existing = self._key(profile.name)
        if existing is not None:
            del self.profiles[existing]
            if self.default_profile == existing:
                self.default_profile = profile.name
        self.profiles[profile.name] = profile
        if set_default or not self.default_profile:
            self.default_profile = profile.name
        self.save()

    def remove(self, name: str) -> bool:
        key = self._key(name)
        if key is None:
            return False
        del self.profiles[key]
        if self.default_profile == key:
            self.default_profile = next(iter(self.profiles), "")
        self.save()
        return True

    def get(self, name: str) -> Optional[ConnectionProfile]:
        key = self._key(name)
        return self.profiles[key] if key is not None else None

    def get_default(self) -> Optional[ConnectionProfile]:
        """The default profile, else the first one stored."""
        if self.default_profile in self.profiles:
            return self.profiles[self.default_profile]
        return next(iter(self.profiles.values()), None)

    def set_default(self, name: str) -> bool:
        key = self._key(name)
        if key is None:
            return False
        self.default_profile = key
        self.save()
        return True

    def list_profiles(self) -> list[ConnectionProfile]:
        return sorted(self.profiles.values(), key=lambda p: p.name.lower())


def resolve_profile(
    profile_name: Optional[str] = None,
    path: Optional[Path] = None,
) -> Optional[ConnectionProfile]:
    """The named profile, or the default one when no name is given."""
    store = ProfileStore.load(path)
    if profile_name:
        return store.get(profile_name)
    return store.get_default()
