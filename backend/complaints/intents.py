"""
Mutation requests accepted by ``ComplaintLifecycleService.apply``.

An intent says *what* the actor wants; it carries no actor and no
complaint id.  ``INTENT_NAME`` keys the authorization table.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union


@dataclass(frozen=True)
class SetStatus:
    status: str
    resolution_images: tuple[str, ...] = ()

    INTENT_NAME: ClassVar[str] = "set_status"


@dataclass(frozen=True)
class AssignTo:
    """``staff_id=None`` unassigns."""

    staff_id: int | None

    INTENT_NAME: ClassVar[str] = "assign_to"


@dataclass(frozen=True)
class AppendRemark:
    text: str

    INTENT_NAME: ClassVar[str] = "append_remark"


@dataclass(frozen=True)
class UpdateComplaint:
    """
    Status and assignment changed in one call (the warden's update form).

    Each part is authorized separately and yields its own fact.
    """

    set_status: SetStatus | None = None
    assign_to: AssignTo | None = None

    def parts(self) -> tuple[SetStatus | AssignTo, ...]:
        return tuple(p for p in (self.set_status, self.assign_to) if p is not None)


Intent = Union[SetStatus, AssignTo, AppendRemark, UpdateComplaint]
