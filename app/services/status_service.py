"""Approval state machine for the two independent gates of a purchase order.

Every order carries a ``(middle_manager_status, final_manager_status)`` pair.
Transitions are planned here as pure functions; persisting the resulting field
changes is left to :mod:`app.services.approval_service`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from app.auth import PurchaseRole, has_any_role
from app.models import ApprovalStatus
from app.services.errors import InvalidTransition, PermissionDenied


class Transition(str, Enum):
    VERIFY = 'verify'
    APPROVE = 'approve'
    REJECT = 'reject'
    RESET = 'reset'


# Admin-tier roles pass every check; an empty tuple means admin-tier only.
TRANSITION_ROLES: dict[Transition, tuple[PurchaseRole, ...]] = {
    Transition.VERIFY: (PurchaseRole.MIDDLE_MANAGER,),
    Transition.APPROVE: (PurchaseRole.FINAL_APPROVER,),
    Transition.REJECT: (PurchaseRole.FINAL_APPROVER,),
    Transition.RESET: (),
}

NOTIFYING_TRANSITIONS = frozenset({Transition.VERIFY, Transition.APPROVE})


@dataclass(frozen=True)
class StatusPair:
    middle: ApprovalStatus = ApprovalStatus.PENDING
    final: ApprovalStatus = ApprovalStatus.PENDING

    @classmethod
    def of(cls, line) -> 'StatusPair':
        return cls(
            middle=coerce_status(getattr(line, 'middle_manager_status', None)),
            final=coerce_status(getattr(line, 'final_manager_status', None)),
        )


@dataclass(frozen=True)
class TransitionPlan:
    transition: Transition
    before: StatusPair
    after: StatusPair
    changes: dict = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.changes)


def coerce_status(value) -> ApprovalStatus:
    if isinstance(value, ApprovalStatus):
        return value
    raw = (str(value) if value is not None else '').strip().lower()
    if not raw:
        return ApprovalStatus.PENDING
    return ApprovalStatus(raw)


def can_perform(roles, transition: Transition) -> bool:
    return has_any_role(roles, *TRANSITION_ROLES[transition])


def plan_transition(
    transition: Transition,
    current: StatusPair,
    roles,
    *,
    now: datetime,
) -> TransitionPlan:
    if not can_perform(roles, transition):
        raise PermissionDenied(f'Not allowed to {transition.value} this order')

    if transition == Transition.VERIFY:
        if current.middle == ApprovalStatus.APPROVED:
            return TransitionPlan(transition, current, current)
        after = StatusPair(middle=ApprovalStatus.APPROVED, final=current.final)
        return TransitionPlan(transition, current, after, {'middle_manager_status': ApprovalStatus.APPROVED})

    if transition == Transition.APPROVE:
        if current.middle != ApprovalStatus.APPROVED:
            raise InvalidTransition('Order must be verified by a middle manager before final approval')
        if current.final == ApprovalStatus.APPROVED:
            raise InvalidTransition('Order is already approved')
        after = StatusPair(middle=current.middle, final=ApprovalStatus.APPROVED)
        return TransitionPlan(
            transition,
            current,
            after,
            {'final_manager_status': ApprovalStatus.APPROVED, 'final_manager_approved_at': now},
        )

    if transition == Transition.REJECT:
        after = StatusPair(middle=ApprovalStatus.REJECTED, final=ApprovalStatus.REJECTED)
        return TransitionPlan(
            transition,
            current,
            after,
            {'middle_manager_status': ApprovalStatus.REJECTED, 'final_manager_status': ApprovalStatus.REJECTED},
        )

    after = StatusPair()
    return TransitionPlan(
        transition,
        current,
        after,
        {
            'middle_manager_status': ApprovalStatus.PENDING,
            'final_manager_status': ApprovalStatus.PENDING,
            'final_manager_approved_at': None,
            'is_payment_completed': False,
            'payment_completed_at': None,
            'is_received': False,
            'received_at': None,
        },
    )
