class DomainError(Exception):
    """Base exception for business rule violations."""


class ValidationError(DomainError):
    """Raised when input data is missing, malformed or violates domain rules."""


class AuthenticationError(DomainError):
    """Raised when no authenticated principal is attached to the request."""


class AuthorizationError(DomainError):
    """Raised when a principal lacks permission for an action."""


class NotFoundError(DomainError):
    """Raised when a referenced batch, classroom or record does not exist."""


class DuplicateError(DomainError):
    """Raised on a uniqueness violation, e.g. a second record for (batch, date)."""


class LockedError(DomainError):
    """Raised when a non-admin tries to modify locked attendance."""


class AlreadyLockedError(DomainError):
    """Raised when locking attendance that is already locked."""


class InternalError(DomainError):
    """Opaque wrapper for unexpected failures; details are logged, never returned."""
