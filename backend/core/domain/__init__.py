"""
core.domain — Shared domain utilities for cross-app service layers.

Modules
-------
exceptions         Domain-specific exceptions that map cleanly to HTTP responses.
exception_handler  DRF exception handler for those exceptions.
notifications      Isolated, deduplicated notification fan-out.
transactions       ``store_write`` atomic write helper.
access             Intent × role authorization tables and role scoping.

Usage from any app::

    from core.domain.exceptions import DomainError, ValidationError
    from core.domain.notifications import Delivery, NotificationService
    from core.domain.transactions import store_write
    from core.domain.access import Grant, authorize
"""
