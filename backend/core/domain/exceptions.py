"""
core.domain.exceptions — Domain-specific exception hierarchy.

These exceptions represent business-rule violations inside service layers.
They are deliberately **not** DRF exceptions so that the domain layer stays
framework-agnostic.  The global DRF exception handler
(``core.domain.exception_handler``) maps them to HTTP responses.

Mapping cheatsheet
------------------
┌────────────────────────────┬──────────────────────────────┬──────┐
│ Domain Exception           │ Meaning                      │ Code │
├────────────────────────────┼──────────────────────────────┼──────┤
│ DomainError                │ generic business-rule error  │ 400  │
│ ValidationError            │ missing / invalid field      │ 400  │
│ AuthorizationError         │ role may not issue intent    │ 403  │
│ NotFound                   │ missing or not visible       │ 404  │
│ PersistenceError           │ store read/write failure     │ 503  │
│ NotificationDeliveryError  │ non-fatal, logged only       │  —   │
└────────────────────────────┴──────────────────────────────┴──────┘

Recommended usage inside a service::

    from core.domain.exceptions import ValidationError

    if not images:
        raise ValidationError("At least one resolution image is required.")
"""

from __future__ import annotations


class DomainError(Exception):
    """
    Base class for all domain / business-rule errors.

    Catch this at the view boundary and convert to a 400 Bad Request.
    """

    def __init__(self, message: str = "A business rule was violated.") -> None:
        self.message = message
        super().__init__(self.message)


class ValidationError(DomainError):
    """
    A field of the intent or payload is missing or invalid.

    Maps to HTTP 400.  Raised before any write happens, so the record
    is left untouched.

    Example::

        raise ValidationError(
            "Resolving requires at least one resolution image.",
            field="resolution_images",
        )
    """

    def __init__(
        self,
        message: str = "The request is invalid.",
        *,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.field = field


class AuthorizationError(DomainError):
    """
    The acting user's role is not permitted to issue this intent.

    Maps to HTTP 403.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        role: str | None = None,
        intent: str | None = None,
    ) -> None:
        if message is None:
            if role and intent:
                message = f"Role '{role}' may not perform '{intent}'."
            else:
                message = "You do not have permission to perform this action."
        super().__init__(message)
        self.role = role
        self.intent = intent


class NotFound(DomainError):
    """
    The requested resource does not exist (or is not visible to the
    requesting user given their role scope).

    Maps to HTTP 404.
    """

    def __init__(self, message: str = "The requested resource was not found.") -> None:
        super().__init__(message)


class PersistenceError(DomainError):
    """
    The store rejected or failed a read/write.

    Maps to HTTP 503.  Raised by ``core.domain.transactions.store_write``
    so that no event is emitted for a write that did not land.
    """

    def __init__(self, message: str = "The data store could not complete the request.") -> None:
        super().__init__(message)


class NotificationDeliveryError(DomainError):
    """
    A single notification could not be persisted or delivered.

    Never surfaced to API callers — the dispatcher catches it, logs it
    and moves on to the next recipient.
    """

    def __init__(
        self,
        message: str = "Notification delivery failed.",
        *,
        recipient_id: int | None = None,
        notification_type: str | None = None,
    ) -> None:
        super().__init__(message)
        self.recipient_id = recipient_id
        self.notification_type = notification_type
