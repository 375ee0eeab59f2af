"""Authentication error taxonomy.

Every subclass of NotAuthenticated maps to the same user-facing outcome
("Not authenticated", HTTP 401). The subclasses exist for internal logging
only and must never be distinguished in a response, otherwise a caller could
tell which tokens were revoked versus forged.
"""

from tenancy.errors import TenantGuardError


class NotAuthenticated(TenantGuardError):
    """The caller has no usable session."""

    public_message = "Not authenticated"

    def __init__(self, reason: str = "not authenticated"):
        self.reason = reason
        super().__init__(reason)


class InvalidOrExpiredSession(NotAuthenticated):
    """Bad signature, expired token, missing claims, unknown or expired session row."""


class RevokedSession(NotAuthenticated):
    """Token signature is valid but its session has been revoked."""
