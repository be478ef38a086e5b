"""Domain error taxonomy.

Every failure raised by the services is one of five kinds. The HTTP
layer maps each kind to a status code in ``coursehub.api.errors``; the
``code`` attribute is a stable machine-readable discriminator for
clients (e.g. ``already_reviewed`` vs ``payment_pending``, both 409).
"""

from __future__ import annotations


class DomainError(Exception):
    code = "error"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class NotFoundError(DomainError):
    code = "not_found"


class NotEnrolledError(NotFoundError):
    code = "not_enrolled"


class ForbiddenError(DomainError):
    code = "forbidden"


class ConflictError(DomainError):
    code = "conflict"


class ValidationError(DomainError):
    code = "validation"


class UnavailableError(DomainError):
    code = "unavailable"
