"""
core.domain.transactions — Helpers for store writes.

Wraps ``transaction.atomic`` and translates store failures into domain
errors so that every service layer follows the same fail-closed approach.

Design goals
------------
* A write either lands completely or raises ``PersistenceError``; callers
  never emit events for a write that did not land.
* No row locks are taken.  The database's own row-level write is the only
  serialization point, so concurrent writes to the same field are
  last-writer-wins.

Usage::

    from core.domain.transactions import store_write

    with store_write("update complaint %s" % complaint.pk):
        complaint.save(update_fields=["status", "updated_at"])
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from django.db import DatabaseError, transaction

from core.domain.exceptions import PersistenceError

logger = logging.getLogger(__name__)


@contextmanager
def store_write(description: str = "store write") -> Iterator[None]:
    """
    Run the enclosed block inside ``transaction.atomic()`` and convert
    any ``DatabaseError`` into ``PersistenceError``.

    Args:
        description: Short human-readable label used in the log line and
                     the error message.

    Raises:
        PersistenceError: If the database rejected any statement in the
                          block.  The block's changes are rolled back.
    """
    try:
        with transaction.atomic():
            yield
    except DatabaseError as exc:
        logger.error("Store write failed (%s): %s", description, exc)
        raise PersistenceError(f"Could not {description}.") from exc
