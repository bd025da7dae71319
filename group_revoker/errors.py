"""
Error taxonomy shared by every step of the revocation workflow.
"""

from __future__ import annotations

from typing import Optional


class GroupRevokerError(Exception):
    """Base class for all errors raised by this package."""
    pass


class AuthError(GroupRevokerError):
    """Raised when credentials are rejected or the token endpoint is unreachable."""
    pass


class GraphAPIError(GroupRevokerError):
    """Raised when Graph API returns a non-recoverable error."""
    def __init__(
        self,
        status_code: int,
        message: str,
        url: str,
        code: Optional[str] = None,
    ):
        self.status_code = status_code
        self.message = message
        self.url = url
        self.code = code
        super().__init__(f"Graph API Error {status_code} for {url}: {message}")


class TransientError(GraphAPIError):
    """Throttling, 5xx or network fault. Retried until the policy gives up."""
    pass


class PermissionDeniedError(GraphAPIError):
    """401/403 from Graph. Never retried."""
    pass


class NotFoundError(GraphAPIError):
    """404 from Graph for the requested resource."""
    pass


class UserNotFoundError(GroupRevokerError):
    """No user matches the requested principal name."""
    def __init__(self, principal_name: str):
        self.principal_name = principal_name
        super().__init__(f"User not found: {principal_name}")


class DirectoryIntegrityError(GroupRevokerError):
    """More than one user matched an exact principal-name lookup."""
    def __init__(self, principal_name: str, match_count: int):
        self.principal_name = principal_name
        self.match_count = match_count
        super().__init__(
            f"{match_count} users match principal name {principal_name}; "
            "refusing to pick one"
        )


class WriteBlocked(GroupRevokerError):
    """Raised when the write guard refuses an outbound request."""
    pass
