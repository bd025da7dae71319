from .models import Principal, Membership, RemovalOutcome, OutcomeStatus, RunSummary
from .session import establish_session, open_session
from .resolver import resolve_user
from .enumerator import list_group_memberships
from .revoker import MembershipRevoker, Pacer, decide_outcome, revoke_membership
from .runner import run_workflow

__all__ = [
    "Principal",
    "Membership",
    "RemovalOutcome",
    "OutcomeStatus",
    "RunSummary",
    "establish_session",
    "open_session",
    "resolve_user",
    "list_group_memberships",
    "MembershipRevoker",
    "Pacer",
    "decide_outcome",
    "revoke_membership",
    "run_workflow",
]
