from __future__ import annotations


class TodoLogError(Exception):
    """Base class for domain errors raised by the services and repositories."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# PUBLIC_INTERFACE
class ValidationError(TodoLogError):
    """Input has the wrong shape, e.g. an empty title."""

    status_code = 400


# PUBLIC_INTERFACE
class NotFoundError(TodoLogError):
    """The referenced todo or activity does not exist."""

    status_code = 404


# PUBLIC_INTERFACE
class NoChangeError(TodoLogError):
    """An update whose supplied fields all equal the stored values."""

    status_code = 400


# PUBLIC_INTERFACE
class StoreError(TodoLogError):
    """The underlying persistence layer failed."""

    status_code = 500
