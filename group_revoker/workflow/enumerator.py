"""
Membership enumeration — snapshot of the user's direct group memberships.
"""

from __future__ import annotations

import logging

from ..errors import GraphAPIError
from ..graph.client import GraphClient
from .models import Membership, Principal

logger = logging.getLogger("group_revoker.workflow.enumerator")

GROUP_ODATA_TYPE = "#microsoft.graph.group"
MEMBER_OF_SELECT = "id,displayName,groupTypes"


def is_group(entry: dict) -> bool:
    return entry.get("@odata.type") == GROUP_ODATA_TYPE


async def list_group_memberships(
    session: GraphClient,
    user: Principal,
) -> tuple[Membership, ...]:
    """
    Return the user's group memberships in the order Graph reports them.
    Directory roles, administrative units and other memberOf targets are
    left out. Graph errors propagate.
    """
    entries = await session.get_all_pages(
        f"users/{user.id}/memberOf",
        params={"$select": MEMBER_OF_SELECT},
    )

    memberships = []
    for entry in entries:
        if not is_group(entry):
            logger.debug(
                f"Skipping non-group memberOf entry {entry.get('id')} "
                f"({entry.get('@odata.type', 'unknown type')})"
            )
            continue

        group_id = entry.get("id")
        if not group_id:
            logger.warning(f"Skipping memberOf group entry without an id: {entry.get('displayName', '')}")
            continue
        name = entry.get("displayName") or await describe_group(session, group_id)
        memberships.append(Membership(
            user_id=user.id,
            group_id=group_id,
            group_display_name=name,
            dynamic="DynamicMembership" in (entry.get("groupTypes") or []),
        ))

    logger.info(
        f"{user.user_principal_name} is a member of {len(memberships)} group(s) "
        f"({len(entries) - len(memberships)} other memberOf entries ignored)"
    )
    return tuple(memberships)


async def describe_group(session: GraphClient, group_id: str) -> str:
    """Fetch a group's display name for reporting; blank if it can't be read."""
    try:
        group = await session.get(f"groups/{group_id}", params={"$select": "displayName"})
    except GraphAPIError as e:
        logger.warning(f"Could not read display name of group {group_id}: {e}")
        return ""
    return group.get("displayName") or ""
