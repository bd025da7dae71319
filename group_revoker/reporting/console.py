"""
Console reporter — human-readable progress lines and the final summary block.
"""

from __future__ import annotations

import sys
from typing import TextIO

from ..workflow.models import Membership, OutcomeStatus, Principal, RemovalOutcome, RunSummary


class ConsoleReporter:
    """Prints per-step progress for an operator watching the run."""

    def __init__(self, stream: TextIO = sys.stdout):
        self.stream = stream
        self._index = 0
        self._total = 0

    def _print(self, line: str = ""):
        print(line, file=self.stream)

    def session_established(self):
        self._print("✅ Authentication successful.\n")

    def user_resolved(self, user: Principal):
        name = f" ({user.display_name})" if user.display_name else ""
        self._print(f"👤 User:    {user.user_principal_name}{name}")
        self._print(f"   Id:      {user.id}")

    def memberships_listed(self, memberships: tuple[Membership, ...]):
        self._total = len(memberships)
        self._index = 0
        self._print(f"👥 Groups:  {self._total} membership(s) to remove\n")

    def outcome(self, membership: Membership, outcome: RemovalOutcome):
        self._index += 1
        prefix = f"  [{self._index}/{self._total}]"
        if outcome.status == OutcomeStatus.REMOVED:
            note = " (already removed)" if outcome.already_absent else ""
            self._print(f"{prefix} ✅ {membership.label}: removed{note}")
        elif outcome.status == OutcomeStatus.SKIPPED:
            self._print(f"{prefix} ⏭  {membership.label}: {outcome.reason}")
        else:
            self._print(f"{prefix} ❌ {membership.label}: {outcome.reason}")


def print_summary(summary: RunSummary, stream: TextIO = sys.stdout):
    """Print the final summary block. Always printed, whatever the outcome."""
    def out(line: str = ""):
        print(line, file=stream)

    out("\n" + "=" * 70)
    if summary.aborted:
        out(" RUN ABORTED")
    elif summary.dry_run:
        out(" DRY RUN COMPLETE — NO CHANGES MADE")
    else:
        out(" RUN COMPLETE")
    out("=" * 70)
    out(f"  User:       {summary.user_principal_name}")
    if summary.aborted:
        out(f"  Error:      {summary.fatal_error}")
    out(f"  Processed:  {summary.considered}")
    out(f"  Removed:    {summary.removed}"
        + (f" ({summary.already_absent} already absent)" if summary.already_absent else ""))
    if summary.dry_run:
        out(f"  Skipped:    {summary.skipped}")
    out(f"  Failed:     {summary.failed}")

    if summary.failures:
        out("\n  Groups needing follow-up:")
        for f in summary.failures:
            name = f.group_display_name or "(unnamed)"
            out(f"    - {name} [{f.group_id}]: {f.reason}")

    out(f"\n  Exit code:  {summary.exit_code}")
    out()
