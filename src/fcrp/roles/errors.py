"""Exceptions raised while resolving and syncing roles.

The Discord client and the sync steps raise these; ``RoleSyncService``
turns every ``RoleSyncError`` into a failed ``SyncResult`` so callers
always get a readable message instead of a traceback.
"""


class RoleSyncError(Exception):
    """Base class for role and department sync failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotAuthenticatedError(RoleSyncError):
    """Raised when no signed-in caller is attached to the request."""

    def __init__(self) -> None:
        super().__init__("Not authenticated")


class NotAuthorizedError(RoleSyncError):
    """Raised when the caller may not act on the target user."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class NoExternalIdentityError(RoleSyncError):
    """Raised when a user has no linked Discord account, or is not in the guild."""

    def __init__(self, message: str = "User has no Discord ID") -> None:
        super().__init__(message)


class ExternalServiceUnavailableError(RoleSyncError):
    """Raised when Discord cannot be reached or answers with an error."""

    def __init__(self, message: str = "Discord is unavailable, try again later") -> None:
        super().__init__(message)


class ExternalServiceRateLimitedError(ExternalServiceUnavailableError):
    """Raised when Discord is still rate limiting after every retry."""

    def __init__(self, retry_after: float, attempts: int) -> None:
        super().__init__(
            f"Discord is rate limiting requests (retry after {retry_after:g}s, "
            f"gave up after {attempts} attempts)"
        )
        self.retry_after = retry_after
        self.attempts = attempts


class NoRolesFoundError(RoleSyncError):
    """Raised when Discord returned no roles for a member."""

    def __init__(self, message: str = "Failed to sync role") -> None:
        super().__init__(message)


class NotWhitelistedError(RoleSyncError):
    """Raised when a department sync is attempted without the whitelist marker role."""

    def __init__(self) -> None:
        super().__init__("User is not whitelisted in the Fan Discord")


class AmbiguousDepartmentError(RoleSyncError):
    """Raised when several departments apply and no selection was given."""

    def __init__(self, candidates: list) -> None:
        super().__init__("Multiple departments found. Please select your primary department.")
        self.candidates = list(candidates)


class PersistFailedError(RoleSyncError):
    """Raised when the user store rejects a write."""


class UnknownRoleError(ValueError):
    """Raised when a string does not name a known role."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown role: {value!r}")
        self.value = value


class UnknownDepartmentError(ValueError):
    """Raised when a string does not name a known department."""

    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown department: {value!r}")
        self.value = value
