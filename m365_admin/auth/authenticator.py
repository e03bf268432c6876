"""
Authentication module — Supports certificate-based and delegated device-code auth.
Uses MSAL for token acquisition against Microsoft Identity Platform.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
import sys
from typing import Optional

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import AuthConfig, AUTHORITY_BASE_URL

logger = logging.getLogger("m365_admin.auth")


class AuthenticationError(Exception):
    """Raised when authentication fails."""
    pass


def scopes_for(resource: str) -> list[str]:
    """App-wide scope for a resource, e.g. https://contoso.sharepoint.com/.default"""
    return [f"{resource.rstrip('/')}/.default"]


class Authenticator:
    """
    Hands out MSAL access tokens, one per resource (Graph or a SharePoint host).
    Supports:
      - Certificate-based app-only authentication
      - Delegated authentication (device code flow)
    """

    def __init__(self, config: AuthConfig):
        self.config = config
        self._tokens: dict[str, str] = {}
        self._app: Optional[msal.ClientApplication] = None

    async def get_token(self, resource: str) -> str:
        """Return an access token for the resource, acquiring it on first use."""
        token = self._tokens.get(resource)
        if token:
            return token

        if self.config.mode == "certificate":
            token = self._acquire_certificate_token(resource)
        elif self.config.mode == "delegated":
            token = self._acquire_delegated_token(resource)
        else:
            raise AuthenticationError(f"Unknown auth mode: {self.config.mode}")

        self._tokens[resource] = token
        return token

    def _load_certificate(self) -> dict:
        """Load the base64 PFX and return an MSAL client credential."""
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthenticationError("Certificate auth config not provided.")

        cert_path = cert_config.certificate_path
        password = cert_config.certificate_password
        if not password:
            password = os.environ.get("M365_ADMIN_CERT_PASSWORD", "")
        if not password:
            password = getpass.getpass("Enter the certificate password: ")

        try:
            with open(cert_path, "r") as f:
                cert_base64 = f.read().strip()

            cert_bytes = base64.b64decode(cert_base64)
            password_bytes = password.encode("utf-8") if password else None

            private_key, certificate, _ = pkcs12.load_key_and_certificates(
                cert_bytes, password_bytes
            )

            private_key_pem = private_key.private_bytes(
                Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
            ).decode("utf-8")

            thumbprint = certificate.fingerprint(SHA1()).hex()

            logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")

        except FileNotFoundError:
            raise AuthenticationError(f"Certificate file not found: {cert_path}")
        except Exception as e:
            raise AuthenticationError(f"Failed to load certificate: {e}")

        return {"thumbprint": thumbprint, "private_key": private_key_pem}

    def _acquire_certificate_token(self, resource: str) -> str:
        """Acquire token using certificate-based client credentials."""
        if self._app is None:
            cert_config = self.config.certificate
            if not cert_config:
                raise AuthenticationError("Certificate auth config not provided.")
            logger.info("Authenticating with certificate-based app credentials...")
            self._app = msal.ConfidentialClientApplication(
                client_id=cert_config.client_id,
                authority=f"{AUTHORITY_BASE_URL}/{cert_config.tenant_id}",
                client_credential=self._load_certificate(),
            )

        result = self._app.acquire_token_for_client(scopes=scopes_for(resource))
        return self._unwrap(result, f"Certificate auth for {resource}")

    def _acquire_delegated_token(self, resource: str) -> str:
        """Acquire token using delegated (device code) flow."""
        deleg_config = self.config.delegated
        if not deleg_config:
            raise AuthenticationError("Delegated auth config not provided.")

        if self._app is None:
            self._app = msal.PublicClientApplication(
                client_id=deleg_config.client_id,
                authority=f"{AUTHORITY_BASE_URL}/{deleg_config.tenant_id}",
            )

        scopes = scopes_for(resource)
        accounts = self._app.get_accounts()
        if accounts:
            result = self._app.acquire_token_silent(scopes, account=accounts[0])
            if result and "access_token" in result:
                return result["access_token"]

        logger.info("Initiating device code authentication flow...")
        flow = self._app.initiate_device_flow(scopes=scopes)
        if "user_code" not in flow:
            raise AuthenticationError(
                f"Device code flow failed: {flow.get('error_description', 'Unknown')}"
            )

        # The device code message must reach the user even without --verbose
        print(flow["message"], file=sys.stderr)

        result = self._app.acquire_token_by_device_flow(flow)
        return self._unwrap(result, f"Delegated auth for {resource}")

    @staticmethod
    def _unwrap(result: dict, label: str) -> str:
        if "access_token" in result:
            logger.info(f"{label} successful.")
            return result["access_token"]
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthenticationError(f"{label} failed: {error}")
