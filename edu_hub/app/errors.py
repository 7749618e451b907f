"""Error hierarchy for the portal.

Validation problems are caught before anything reaches the store. Store
problems come back from the store itself (transport failure, missing row,
row policy denial). None of these are fatal: routes turn them into notices.
"""


class PortalError(Exception):
    """Base exception for all portal errors."""

    pass


class ValidationError(PortalError):
    """A required field is missing or malformed. Raised before any store call."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class StoreError(PortalError):
    """A store call failed or was rejected."""

    pass


class PermissionDenied(StoreError):
    """The acting principal may not perform this mutation.

    Raised both by the repository gate and by the store's own row policies.
    """

    pass


class NotFound(StoreError):
    """The addressed row does not exist."""

    pass


class AuthenticationError(PortalError):
    """Wrong credentials or an unusable sign-up request."""

    pass


class RoleResolutionFailure(PortalError):
    """No usable role on the profile row. Never surfaced to users."""

    pass
