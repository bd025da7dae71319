"""
Workflow data models — transient, in-memory records for one revocation run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Principal:
    """The target directory user."""
    id: str
    user_principal_name: str
    display_name: str = ""


@dataclass(frozen=True)
class Membership:
    """A user-to-group edge as reported by memberOf at enumeration time."""
    user_id: str
    group_id: str
    group_display_name: str = ""
    dynamic: bool = False

    @property
    def label(self) -> str:
        if self.group_display_name:
            return f"{self.group_display_name} ({self.group_id})"
        return self.group_id


class OutcomeStatus:
    REMOVED = "removed"
    FAILED = "failed"
    SKIPPED = "skipped"      # Dry run only


@dataclass(frozen=True)
class RemovalOutcome:
    """Result of one removal attempt."""
    status: str
    reason: str = ""
    already_absent: bool = False

    @classmethod
    def removed(cls, already_absent: bool = False) -> "RemovalOutcome":
        reason = "member not found; already removed" if already_absent else ""
        return cls(OutcomeStatus.REMOVED, reason, already_absent)

    @classmethod
    def failed(cls, reason: str) -> "RemovalOutcome":
        return cls(OutcomeStatus.FAILED, reason)

    @classmethod
    def skipped(cls, reason: str) -> "RemovalOutcome":
        return cls(OutcomeStatus.SKIPPED, reason)

    @property
    def ok(self) -> bool:
        return self.status != OutcomeStatus.FAILED


@dataclass
class FailedRemoval:
    group_id: str
    group_display_name: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "group_id": self.group_id,
            "group_display_name": self.group_display_name,
            "reason": self.reason,
        }


@dataclass
class RunSummary:
    """Aggregate counts for a run; individual outcomes are not retained."""
    user_principal_name: str
    considered: int = 0
    removed: int = 0
    already_absent: int = 0
    skipped: int = 0
    failures: list[FailedRemoval] = field(default_factory=list)
    fatal_error: Optional[str] = None
    dry_run: bool = False

    @property
    def failed(self) -> int:
        return len(self.failures)

    @property
    def aborted(self) -> bool:
        return self.fatal_error is not None

    @property
    def exit_code(self) -> int:
        return 1 if self.aborted or self.failures else 0

    def record(self, membership: Membership, outcome: RemovalOutcome) -> None:
        self.considered += 1
        if outcome.status == OutcomeStatus.REMOVED:
            self.removed += 1
            if outcome.already_absent:
                self.already_absent += 1
        elif outcome.status == OutcomeStatus.SKIPPED:
            self.skipped += 1
        else:
            self.failures.append(FailedRemoval(
                group_id=membership.group_id,
                group_display_name=membership.group_display_name,
                reason=outcome.reason,
            ))

    def to_dict(self) -> dict:
        return {
            "user_principal_name": self.user_principal_name,
            "considered": self.considered,
            "removed": self.removed,
            "already_absent": self.already_absent,
            "skipped": self.skipped,
            "failed": self.failed,
            "failures": [f.to_dict() for f in self.failures],
            "fatal_error": self.fatal_error,
            "dry_run": self.dry_run,
            "exit_code": self.exit_code,
        }
