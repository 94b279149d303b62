"""Sponsor-specific exceptions."""


class SponsorError(Exception):
    """Base exception for sponsor errors."""

    pass


class MissingSponsorId(SponsorError):
    """Raised when an operation needs a persisted sponsor but the sponsor has no id."""

    pass


class MissingRole(SponsorError):
    """Raised when a new member is added without a role."""

    pass


class InvalidRole(SponsorError):
    """Raised when a role is not one of owner, editor, staff."""

    def __init__(self, role: object):
        super().__init__(f"Invalid role: {role!r}")
        self.role = role


class InvalidStatus(SponsorError):
    """Raised when a sponsor status is not one of active, pending."""

    def __init__(self, status: object):
        super().__init__(f"Invalid status: {status!r}")
        self.status = status


class SponsorNotFound(SponsorError):
    """Raised when a sponsor id does not resolve to a live sponsor."""

    pass


class MemberNotFound(SponsorError):
    """Raised when a user has no membership in the sponsor."""

    pass


class UserNotFound(SponsorError):
    """Raised when a user id does not resolve to a user."""

    pass


class SponsorNotSaved(SponsorError):
    """Raised when a sponsor that must be persisted fails validation."""

    def __init__(self, message: str, errors: dict[str, list[str]] | None = None):
        super().__init__(message)
        self.errors = errors or {}
