"""
User resolution — exact-match lookup by userPrincipalName.
"""

from __future__ import annotations

import logging

from ..errors import DirectoryIntegrityError, GraphAPIError, UserNotFoundError
from ..graph.client import GraphClient
from .models import Principal

logger = logging.getLogger("group_revoker.workflow.resolver")

USER_SELECT = "id,displayName,userPrincipalName"


def odata_quote(value: str) -> str:
    """Quote a string literal for an OData $filter expression."""
    return "'" + value.replace("'", "''") + "'"


async def resolve_user(session: GraphClient, principal_name: str) -> Principal:
    """
    Look up exactly one user by principal name.
    Raises UserNotFoundError on zero matches and DirectoryIntegrityError on
    more than one. Graph errors propagate after the retry policy is spent.
    """
    logger.info(f"Resolving user {principal_name}")
    users = await session.get_all_pages(
        "users",
        params={
            "$filter": f"userPrincipalName eq {odata_quote(principal_name)}",
            "$select": USER_SELECT,
        },
    )

    if not users:
        raise UserNotFoundError(principal_name)
    if len(users) > 1:
        raise DirectoryIntegrityError(principal_name, len(users))

    user = users[0]
    if not user.get("id"):
        raise GraphAPIError(200, f"User lookup for {principal_name} returned an entry without an id", "users")
    principal = Principal(
        id=user["id"],
        user_principal_name=user.get("userPrincipalName") or principal_name,
        display_name=user.get("displayName") or "",
    )
    logger.info(f"Resolved {principal.user_principal_name} to {principal.id}")
    return principal
