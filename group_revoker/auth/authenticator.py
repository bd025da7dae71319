"""
Authentication module — App-only client credentials (secret or certificate).
Uses MSAL for token acquisition against Microsoft Identity Platform.
"""

from __future__ import annotations

import base64
import getpass
import logging
import os
import time
from typing import Any, Callable, Optional

from cryptography.hazmat.primitives.serialization import pkcs12, Encoding, PrivateFormat, NoEncryption
from cryptography.hazmat.primitives.hashes import SHA1
import msal

from ..config import (
    APP_SCOPES,
    AUTHORITY_BASE_URL,
    ENV_CERT_PASSWORD,
    REQUIRED_PERMISSIONS,
    AuthConfig,
    CertificateAuth,
)
from ..errors import AuthError

logger = logging.getLogger("group_revoker.auth")

# Re-acquire this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 300

AppFactory = Callable[..., Any]


class Authenticator:
    """
    Handles MSAL-based app-only authentication for Microsoft Graph.
    Supports:
      - Client secret credentials
      - Certificate-based credentials (base64-encoded PFX)
    """

    def __init__(
        self,
        config: AuthConfig,
        app_factory: AppFactory = msal.ConfidentialClientApplication,
    ):
        self.config = config
        self._app_factory = app_factory
        self._app: Optional[Any] = None
        self._access_token: Optional[str] = None
        self._token_expiry: Optional[float] = None

    async def acquire_token(self) -> str:
        """Acquire an access token based on configured auth mode."""
        if self.config.mode not in ("secret", "certificate"):
            raise AuthError(f"Unknown auth mode: {self.config.mode}")
        self._app = self._build_app()
        return self._acquire()

    def get_token(self) -> str:
        """
        Token provider for the Graph client.
        Returns the cached token, re-acquiring it when close to expiry.
        """
        if self._app is None:
            raise AuthError("Authenticator has no token yet. Call acquire_token() first.")
        if (
            self._access_token
            and self._token_expiry
            and time.time() < self._token_expiry - EXPIRY_MARGIN_SECONDS
        ):
            return self._access_token
        logger.info("Access token near expiry, re-acquiring.")
        return self._acquire()

    def _build_app(self) -> Any:
        if self.config.mode == "certificate":
            tenant_id, client_id, credential = self._certificate_credential()
        else:
            tenant_id, client_id, credential = self._secret_credential()

        try:
            return self._app_factory(
                client_id=client_id,
                authority=f"{AUTHORITY_BASE_URL}/{tenant_id}",
                client_credential=credential,
            )
        except Exception as e:
            # MSAL performs authority discovery here; unknown tenants and
            # unreachable networks both surface as exceptions
            raise AuthError(f"Could not reach authority for tenant {tenant_id}: {e}") from e

    def _secret_credential(self) -> tuple[str, str, str]:
        secret_config = self.config.secret
        if not secret_config:
            raise AuthError("Client secret auth config not provided.")
        _require(
            tenant_id=secret_config.tenant_id,
            client_id=secret_config.client_id,
            client_secret=secret_config.client_secret,
        )
        logger.info("Authenticating with client secret app credentials...")
        return secret_config.tenant_id, secret_config.client_id, secret_config.client_secret

    def _certificate_credential(self) -> tuple[str, str, dict]:
        """Load a base64-encoded PFX and build an MSAL certificate credential."""
        cert_config = self.config.certificate
        if not cert_config:
            raise AuthError("Certificate auth config not provided.")
        _require(
            tenant_id=cert_config.tenant_id,
            client_id=cert_config.client_id,
            certificate_path=cert_config.certificate_path,
        )

        logger.info("Authenticating with certificate-based app credentials...")
        private_key_pem, thumbprint = load_certificate(cert_config)
        logger.info(f"Certificate loaded. Thumbprint: {thumbprint}")
        return cert_config.tenant_id, cert_config.client_id, {
            "thumbprint": thumbprint,
            "private_key": private_key_pem,
        }

    def _acquire(self) -> str:
        try:
            result = self._app.acquire_token_for_client(scopes=APP_SCOPES)
        except Exception as e:
            raise AuthError(f"Token request failed: {e}") from e

        if result and "access_token" in result:
            self._access_token = result["access_token"]
            self._token_expiry = time.time() + float(result.get("expires_in", 3600))
            logger.info("App-only authentication successful.")
            return self._access_token

        result = result or {}
        error = result.get("error_description", result.get("error", "Unknown"))
        raise AuthError(f"App-only auth failed: {error}")

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @staticmethod
    def list_required_permissions() -> dict[str, str]:
        """Return the map of required Graph API application permissions."""
        return REQUIRED_PERMISSIONS


def load_certificate(cert_config: CertificateAuth) -> tuple[str, str]:
    """Return (private key PEM, SHA1 thumbprint hex) for a base64 PFX file."""
    password = cert_config.certificate_password
    if not password:
        password = os.environ.get(ENV_CERT_PASSWORD, "")
    if not password:
        password = getpass.getpass("Enter the certificate password: ")

    cert_path = cert_config.certificate_path
    try:
        with open(cert_path, "r") as f:
            cert_base64 = f.read().strip()

        cert_bytes = base64.b64decode(cert_base64)
        password_bytes = password.encode("utf-8") if password else None

        private_key, certificate, _ = pkcs12.load_key_and_certificates(
            cert_bytes, password_bytes
        )
    except FileNotFoundError:
        raise AuthError(f"Certificate file not found: {cert_path}")
    except Exception as e:
        raise AuthError(f"Failed to load certificate: {e}") from e

    if private_key is None or certificate is None:
        raise AuthError(f"Certificate bundle {cert_path} has no key or certificate.")

    private_key_pem = private_key.private_bytes(
        Encoding.PEM, PrivateFormat.PKCS8, NoEncryption()
    ).decode("utf-8")
    thumbprint = certificate.fingerprint(SHA1()).hex()
    return private_key_pem, thumbprint


def _require(**values: str) -> None:
    missing = [name for name, value in values.items() if not value or not value.strip()]
    if missing:
        raise AuthError(f"Missing credential value(s): {', '.join(missing)}")
