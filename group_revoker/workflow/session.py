"""
Session establishment — authenticates and opens the Graph client.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from ..auth.authenticator import Authenticator, AppFactory
from ..config import AuthConfig, ClientSecretAuth, RunConfig
from ..graph.client import GraphClient
from ..safety.guardian import WriteGuard

logger = logging.getLogger("group_revoker.workflow.session")


async def establish_session(
    tenant_id: str,
    client_id: str,
    client_secret: str,
    config: Optional[RunConfig] = None,
    app_factory: Optional[AppFactory] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GraphClient:
    """
    Authenticate with a client secret and return an open Graph session.
    Raises AuthError; no Graph request is made when authentication fails.
    """
    config = config or RunConfig()
    config.auth = AuthConfig(
        mode="secret",
        secret=ClientSecretAuth(
            tenant_id=tenant_id,
            client_id=client_id,
            client_secret=client_secret,
        ),
    )
    return await open_session(config, app_factory=app_factory, transport=transport)


async def open_session(
    config: RunConfig,
    app_factory: Optional[AppFactory] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> GraphClient:
    """Open a session for whichever credential mode the config selects."""
    if app_factory is None:
        authenticator = Authenticator(config.auth)
    else:
        authenticator = Authenticator(config.auth, app_factory=app_factory)

    await authenticator.acquire_token()
    logger.info(f"Session established for tenant {config.auth.tenant_id}")

    client = GraphClient(
        token_provider=authenticator.get_token,
        guardian=WriteGuard(dry_run=config.revocation.dry_run),
        retry=config.retry,
        config=config.revocation,
        transport=transport,
    )
    return await client.open()
