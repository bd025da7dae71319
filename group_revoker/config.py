"""
Configuration module for the group membership revoker.
Defines credentials, Graph API settings, retry/throttle tuning and logging.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Optional


# ─── Tenant Authentication ───────────────────────────────────────────────────

@dataclass
class ClientSecretAuth:
    """Client-secret app-only authentication configuration."""
    tenant_id: str
    client_id: str
    client_secret: str = ""

@dataclass
class CertificateAuth:
    """Certificate-based app-only authentication configuration."""
    tenant_id: str
    client_id: str
    certificate_path: str          # Path to base64-encoded PFX
    certificate_password: str = "" # Falls back to env, then prompt

@dataclass
class AuthConfig:
    """Authentication configuration — supports both app-only modes."""
    mode: str = "secret"  # "secret" or "certificate"
    secret: Optional[ClientSecretAuth] = None
    certificate: Optional[CertificateAuth] = None

    @property
    def tenant_id(self) -> str:
        creds = self.certificate if self.mode == "certificate" else self.secret
        return creds.tenant_id if creds else ""


# ─── Graph API Settings ─────────────────────────────────────────────────────

GRAPH_BASE_URL = "https://graph.microsoft.com"
GRAPH_API_VERSION = "v1.0"
AUTHORITY_BASE_URL = "https://login.microsoftonline.com"
APP_SCOPES = ["https://graph.microsoft.com/.default"]

# Retry / throttling
MAX_ATTEMPTS = 3                  # Total attempts per request (first try included)
INITIAL_BACKOFF_SECONDS = 2.0     # First retry delay
MAX_BACKOFF_SECONDS = 120.0       # Cap on exponential backoff
BACKOFF_MULTIPLIER = 2.0          # Exponential factor
TRANSIENT_STATUS_CODES = (429, 500, 502, 503, 504)

# Pacing between membership removals
INTER_REQUEST_DELAY_SECONDS = 0.5

# Timeouts
REQUEST_TIMEOUT_SECONDS = 60.0
CONNECT_TIMEOUT_SECONDS = 30.0

# Pagination
DEFAULT_PAGE_SIZE = 999           # Maximum items per page ($top)
MAX_PAGES_PER_ENDPOINT = 1000     # Safety cap on pagination loops

# Environment fallbacks for credentials
ENV_TENANT_ID = "GROUP_REVOKER_TENANT_ID"
ENV_CLIENT_ID = "GROUP_REVOKER_CLIENT_ID"
ENV_CLIENT_SECRET = "GROUP_REVOKER_CLIENT_SECRET"
ENV_CERT_PASSWORD = "GROUP_REVOKER_CERT_PASSWORD"


# ─── Retry Policy ───────────────────────────────────────────────────────────

@dataclass
class RetryPolicy:
    """Bounded exponential backoff for transient Graph failures."""
    max_attempts: int = MAX_ATTEMPTS
    base_delay: float = INITIAL_BACKOFF_SECONDS
    multiplier: float = BACKOFF_MULTIPLIER
    max_delay: float = MAX_BACKOFF_SECONDS
    jitter: float = 0.0               # Fraction of the delay added at random

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if not 0.0 <= self.jitter <= 1.0:
            raise ValueError("jitter must be between 0.0 and 1.0")

    def delay_for(self, retry_number: int, rand: float = 0.0) -> float:
        """Delay before retry number `retry_number` (1-based)."""
        delay = self.base_delay * (self.multiplier ** (retry_number - 1))
        delay = min(delay, self.max_delay)
        return delay + delay * self.jitter * rand


# ─── Revocation Settings ────────────────────────────────────────────────────

@dataclass
class RevocationConfig:
    """Controls for the removal loop."""
    inter_request_delay: float = INTER_REQUEST_DELAY_SECONDS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    connect_timeout: float = CONNECT_TIMEOUT_SECONDS
    page_size: int = DEFAULT_PAGE_SIZE
    max_pages: int = MAX_PAGES_PER_ENDPOINT
    dry_run: bool = False


# ─── Master Configuration ───────────────────────────────────────────────────

@dataclass
class RunConfig:
    """Top-level configuration for a single revocation run."""
    auth: AuthConfig = field(default_factory=AuthConfig)
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    revocation: RevocationConfig = field(default_factory=RevocationConfig)
    verbose: bool = False
    log_file: str = ""

    @classmethod
    def from_file(cls, path: str) -> "RunConfig":
        """Load configuration from a JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        config = cls()
        if "auth" in data:
            auth_data = data["auth"]
            config.auth.mode = auth_data.get("mode", "secret")
            if "secret" in auth_data:
                s = auth_data["secret"]
                config.auth.secret = ClientSecretAuth(
                    tenant_id=s["tenant_id"],
                    client_id=s["client_id"],
                    client_secret=s.get("client_secret", ""),
                )
            if "certificate" in auth_data:
                c = auth_data["certificate"]
                config.auth.certificate = CertificateAuth(
                    tenant_id=c["tenant_id"],
                    client_id=c["client_id"],
                    certificate_path=c.get("certificate_path", "./base64.txt"),
                    certificate_password=c.get("certificate_password", ""),
                )
        if "retry" in data:
            for k, v in data["retry"].items():
                if hasattr(config.retry, k):
                    setattr(config.retry, k, v)
            config.retry.__post_init__()
        if "revocation" in data:
            for k, v in data["revocation"].items():
                if hasattr(config.revocation, k):
                    setattr(config.revocation, k, v)
        config.verbose = data.get("verbose", False)
        config.log_file = data.get("log_file", "")
        return config

    def apply_environment(self, environ: Optional[dict] = None) -> None:
        """Fill missing client-secret credentials from the environment."""
        env = os.environ if environ is None else environ
        if self.auth.mode != "secret":
            return
        if self.auth.secret is None:
            self.auth.secret = ClientSecretAuth(tenant_id="", client_id="")
        s = self.auth.secret
        s.tenant_id = s.tenant_id or env.get(ENV_TENANT_ID, "")
        s.client_id = s.client_id or env.get(ENV_CLIENT_ID, "")
        s.client_secret = s.client_secret or env.get(ENV_CLIENT_SECRET, "")


# ─── Logging ────────────────────────────────────────────────────────────────

LOGGER_NAME = "group_revoker"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"
FILE_FORMAT = "%(asctime)s\t%(levelname)s\t%(name)s\t%(message)s"


def setup_logging(verbose: bool = False, log_file: str = "") -> logging.Logger:
    """
    Configure the package logger.
    Console output goes to stderr; an optional file handler keeps a
    timestamped audit trail of every step.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


# ─── Required Graph API Permissions (application) ───────────────────────────

REQUIRED_PERMISSIONS = {
    "User.Read.All": "Resolve the target user by userPrincipalName",
    "Directory.Read.All": "Enumerate memberOf relations of the user",
    "GroupMember.ReadWrite.All": "Remove the user from group member lists",
}
