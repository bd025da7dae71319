"""
Write Guard — Restricts outbound writes to group-membership removals.
Validates every HTTP method/URL pair, blocks anything else, and logs checks.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

from ..errors import WriteBlocked

logger = logging.getLogger("group_revoker.safety")

# ─── Allowed Writes ──────────────────────────────────────────────────────────

READ_METHODS = {"GET", "HEAD", "OPTIONS"}

# The only write this tool is entitled to perform
ALLOWED_WRITE_ENDPOINTS = {
    "DELETE": [
        re.compile(r"/groups/[^/]+/members/[^/]+/\$ref$"),
    ],
}


class WriteGuard:
    """
    Validates every outbound HTTP request before execution.
    Reads always pass; DELETE passes only for a member reference of a group.
    In dry-run mode every write is refused.
    """

    def __init__(self, dry_run: bool = False):
        self.dry_run = dry_run
        self.blocked: list[dict] = []
        self.checks_performed: int = 0
        self.writes_allowed: int = 0
        self.started_at: str = datetime.now(timezone.utc).isoformat()

    def validate_request(self, method: str, url: str) -> bool:
        """
        Validate a request.
        Returns True if allowed, raises WriteBlocked if not.
        """
        self.checks_performed += 1
        method_upper = method.upper()

        if method_upper in READ_METHODS:
            return True

        path = url.split("?", 1)[0]
        if self.dry_run:
            self._record_block(method_upper, url, "Dry run")
            raise WriteBlocked(f"Dry run: {method_upper} {path} not sent")

        for pattern in ALLOWED_WRITE_ENDPOINTS.get(method_upper, []):
            if pattern.search(path):
                self.writes_allowed += 1
                return True

        self._record_block(method_upper, url, "Write not on allow list")
        raise WriteBlocked(f"Write blocked: {method_upper} {path}")

    def _record_block(self, method: str, url: str, reason: str):
        """Record a refused request for audit."""
        self.blocked.append({
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "method": method,
            "url": url,
            "reason": reason,
        })
        level = logging.INFO if reason == "Dry run" else logging.CRITICAL
        logger.log(level, f"{reason}: {method} {url}")

    def get_audit_record(self) -> dict:
        """Return the guard's audit record."""
        return {
            "write_guard": {
                "mode": "DRY-RUN" if self.dry_run else "MEMBERSHIP-REMOVAL",
                "started_at": self.started_at,
                "checks_performed": self.checks_performed,
                "writes_allowed": self.writes_allowed,
                "blocked": len(self.blocked),
            }
        }
