"""Error types shared by the poller, the recreate decider and the resources."""

from __future__ import annotations


class InputError(ValueError):
    """Raised when user-declared input is malformed.

    Input errors are fatal to the current call and are never retried.
    Subclassing ValueError lets pydantic validators surface them as
    ordinary validation errors.
    """

    pass


class UnknownTypeError(InputError):
    """Raised when a resource or data source type is not registered."""

    pass
