"""Errors raised by the service modules and turned into flash messages by the views."""


class LaundryError(Exception):
    """Base class for application errors with a user-facing message."""


class ValidationError(LaundryError):
    """Input rejected before anything was written."""


class AuthError(LaundryError):
    """Registration or sign-in failed."""


class NotFoundError(LaundryError):
    """A write targeted a record that does not exist."""
