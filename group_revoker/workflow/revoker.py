"""
Membership revocation — one DELETE per membership, outcomes accounted.

Outcome classification (decide_outcome) is kept apart from the network call
(revoke_membership) so the accounting rules can be exercised without Graph.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional

from ..config import INTER_REQUEST_DELAY_SECONDS
from ..errors import (
    AuthError,
    GraphAPIError,
    NotFoundError,
    PermissionDeniedError,
    TransientError,
    WriteBlocked,
)
from ..graph.client import GraphClient, Sleeper
from .models import Membership, OutcomeStatus, RemovalOutcome, RunSummary

logger = logging.getLogger("group_revoker.workflow.revoker")

OutcomeCallback = Callable[[Membership, RemovalOutcome], None]


def member_ref_endpoint(group_id: str, user_id: str) -> str:
    return f"groups/{group_id}/members/{user_id}/$ref"


def decide_outcome(error: Optional[Exception], dry_run: bool = False) -> RemovalOutcome:
    """Map the result of a removal request onto a RemovalOutcome."""
    if error is None:
        return RemovalOutcome.removed()
    if isinstance(error, NotFoundError):
        # The membership is gone either way
        return RemovalOutcome.removed(already_absent=True)
    if isinstance(error, WriteBlocked):
        if dry_run:
            return RemovalOutcome.skipped("dry run; would remove")
        return RemovalOutcome.failed(str(error))
    if isinstance(error, PermissionDeniedError):
        return RemovalOutcome.failed(f"permission denied ({error.status_code}): {error.message}")
    if isinstance(error, TransientError):
        status = error.status_code or "network"
        return RemovalOutcome.failed(f"transient failure ({status}), retries exhausted: {error.message}")
    if isinstance(error, GraphAPIError):
        return RemovalOutcome.failed(f"HTTP {error.status_code}: {error.message}")
    if isinstance(error, AuthError):
        return RemovalOutcome.failed(f"authentication failed: {error}")
    return RemovalOutcome.failed(f"{type(error).__name__}: {error}")


async def revoke_membership(
    session: GraphClient,
    user_id: str,
    group_id: str,
) -> RemovalOutcome:
    """
    Remove one user from one group and report the outcome.
    Never raises for Graph errors or for a token that can no longer be acquired.
    """
    try:
        await session.delete(member_ref_endpoint(group_id, user_id))
    except (GraphAPIError, WriteBlocked, AuthError) as e:
        return decide_outcome(e, dry_run=session.guardian.dry_run)
    return decide_outcome(None)


class Pacer:
    """
    Enforces a minimum pause between the end of one removal attempt and the
    start of the next.
    """

    def __init__(
        self,
        min_interval: float = INTER_REQUEST_DELAY_SECONDS,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.min_interval = min_interval
        self._sleep = sleep
        self._clock = clock
        self._last: Optional[float] = None

    async def wait(self):
        """Call before sending a request."""
        if self._last is not None and self.min_interval > 0:
            remaining = self.min_interval - (self._clock() - self._last)
            if remaining > 0:
                await self._sleep(remaining)

    def mark(self):
        """Call once the attempt has completed."""
        self._last = self._clock()


class MembershipRevoker:
    """
    Processes a membership snapshot strictly in order, one request at a time.
    A failure on one group never stops the loop.
    """

    def __init__(
        self,
        session: GraphClient,
        pacer: Optional[Pacer] = None,
        on_outcome: Optional[OutcomeCallback] = None,
    ):
        self.session = session
        self.pacer = pacer or Pacer()
        self.on_outcome = on_outcome

    async def revoke_all(
        self,
        user_principal_name: str,
        memberships: Iterable[Membership],
        summary: Optional[RunSummary] = None,
    ) -> RunSummary:
        """
        Revoke every membership, recording into `summary` as it goes so the
        counts survive an exception raised part-way through.
        """
        if summary is None:
            summary = RunSummary(
                user_principal_name=user_principal_name,
                dry_run=self.session.guardian.dry_run,
            )

        for membership in tuple(memberships):
            await self.pacer.wait()
            try:
                outcome = await revoke_membership(
                    self.session, membership.user_id, membership.group_id
                )
            finally:
                self.pacer.mark()

            if membership.dynamic and outcome.status == OutcomeStatus.FAILED:
                outcome = RemovalOutcome.failed(
                    f"{outcome.reason} (dynamic membership group; change the membership rule instead)"
                )

            summary.record(membership, outcome)
            if outcome.ok:
                logger.info(f"{membership.label}: {outcome.status} {outcome.reason}".rstrip())
            else:
                logger.warning(f"{membership.label}: failed: {outcome.reason}")
            if self.on_outcome:
                self.on_outcome(membership, outcome)

        return summary
