"""
Workflow runner — authenticate, resolve, enumerate, revoke, summarise.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from ..config import RunConfig
from ..errors import AuthError, GroupRevokerError
from ..graph.client import GraphClient
from .enumerator import list_group_memberships
from .models import Membership, Principal, RunSummary
from .resolver import resolve_user
from .revoker import MembershipRevoker, Pacer
from .session import open_session

logger = logging.getLogger("group_revoker.workflow")

SessionOpener = Callable[[RunConfig], Awaitable[GraphClient]]
Confirm = Callable[[Principal, tuple[Membership, ...]], bool]


async def run_workflow(
    config: RunConfig,
    principal_name: str,
    session_opener: SessionOpener = open_session,
    reporter=None,
    confirm: Optional[Confirm] = None,
    pacer: Optional[Pacer] = None,
) -> RunSummary:
    """
    Run the full removal workflow for one user and return its summary.
    Fatal errors are recorded on the summary rather than raised; the session
    is closed whenever it was opened.
    """
    summary = RunSummary(
        user_principal_name=principal_name,
        dry_run=config.revocation.dry_run,
    )

    try:
        session = await session_opener(config)
    except AuthError as e:
        logger.error(f"Authentication failed: {e}")
        summary.fatal_error = f"Authentication failed: {e}"
        return summary

    if reporter:
        reporter.session_established()

    try:
        user = await resolve_user(session, principal_name)
        if reporter:
            reporter.user_resolved(user)

        memberships = await list_group_memberships(session, user)
        if reporter:
            reporter.memberships_listed(memberships)

        if memberships and confirm and not confirm(user, memberships):
            logger.info("Removal cancelled by operator.")
            summary.fatal_error = "Cancelled by operator before any removal"
            return summary

        revoker = MembershipRevoker(
            session,
            pacer=pacer or Pacer(config.revocation.inter_request_delay),
            on_outcome=reporter.outcome if reporter else None,
        )
        summary.user_principal_name = user.user_principal_name
        await revoker.revoke_all(user.user_principal_name, memberships, summary=summary)
        logger.info(
            f"Run finished for {user.user_principal_name}: {summary.considered} considered, "
            f"{summary.removed} removed, {summary.failed} failed"
        )
        return summary

    except GroupRevokerError as e:
        logger.error(f"Aborting run for {principal_name}: {e}")
        summary.fatal_error = str(e)
        return summary

    except Exception as e:
        logger.exception(f"Unexpected error during run for {principal_name}")
        summary.fatal_error = f"Unexpected error: {type(e).__name__}: {e}"
        return summary

    finally:
        logger.debug(f"Graph client stats: {session.get_stats()}")
        logger.debug(f"Write guard: {session.guardian.get_audit_record()}")
        await session.aclose()
