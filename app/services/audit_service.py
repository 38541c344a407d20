"""Audit trail for purchase orders, vendors and sign-ins.

Order entries always name the order they touch and, for status changes, carry
the middle/final status pair before and after the change. Entries are added to
the caller's session; the caller owns the commit.
"""
from __future__ import annotations

from enum import Enum

from sqlalchemy.orm import Session

from app.auth import Principal
from app.models import AuditLog, AuthEvent, Employee
from app.services.status_service import StatusPair, Transition


class OrderAction(str, Enum):
    CREATED = 'ORDER_CREATED'
    VERIFIED = 'ORDER_VERIFIED'
    APPROVED = 'ORDER_APPROVED'
    REJECTED = 'ORDER_REJECTED'
    RESET = 'ORDER_RESET'
    PAYMENT_COMPLETED = 'PAYMENT_COMPLETED'
    RECEIPT_COMPLETED = 'RECEIPT_COMPLETED'
    EDITED = 'ORDER_EDITED'
    DELETED = 'ORDER_DELETED'
    LINE_DELETED = 'ORDER_LINE_DELETED'
    PO_DOWNLOADED = 'PO_DOWNLOADED'


class AccountAction(str, Enum):
    LOGIN = 'AUTH_LOGIN'
    LOGOUT = 'AUTH_LOGOUT'
    VENDOR_CREATED = 'VENDOR_CREATED'
    VENDOR_UPDATED = 'VENDOR_UPDATED'
    VENDOR_CONTACT_ADDED = 'VENDOR_CONTACT_ADDED'


TRANSITION_ACTIONS = {
    Transition.VERIFY: OrderAction.VERIFIED,
    Transition.APPROVE: OrderAction.APPROVED,
    Transition.REJECT: OrderAction.REJECTED,
    Transition.RESET: OrderAction.RESET,
}


def status_snapshot(pair: StatusPair) -> dict:
    return {'middle': pair.middle.value, 'final': pair.final.value}


def record_order_event(
    db: Session,
    *,
    actor: Principal,
    action: OrderAction,
    order_number: str,
    ip: str | None = None,
    before: StatusPair | None = None,
    after: StatusPair | None = None,
    details: dict | None = None,
) -> AuditLog:
    if not (order_number or '').strip():
        raise ValueError('Order audit entries need an order number')
    action = OrderAction(action)

    meta = {'actor_name': actor.name}
    if before is not None:
        meta['before'] = status_snapshot(before)
    if after is not None:
        meta['after'] = status_snapshot(after)
    if details:
        meta.update(details)

    entry = AuditLog(
        actor_employee_id=actor.id,
        action=action.value,
        order_number=order_number,
        ip=ip,
        meta=meta,
    )
    db.add(entry)
    return entry


def record_transition(
    db: Session,
    *,
    actor: Principal,
    transition: Transition,
    order_number: str,
    before: StatusPair,
    after: StatusPair,
    ip: str | None = None,
) -> AuditLog:
    return record_order_event(
        db,
        actor=actor,
        action=TRANSITION_ACTIONS[Transition(transition)],
        order_number=order_number,
        ip=ip,
        before=before,
        after=after,
    )


def record_account_event(
    db: Session,
    *,
    actor_employee_id: int | None,
    action: AccountAction,
    ip: str | None = None,
    details: dict | None = None,
) -> AuditLog:
    entry = AuditLog(
        actor_employee_id=actor_employee_id,
        action=AccountAction(action).value,
        order_number=None,
        ip=ip,
        meta=dict(details or {}),
    )
    db.add(entry)
    return entry


def record_login_attempt(
    db: Session,
    *,
    email: str,
    employee: Employee | None,
    ip: str | None,
    user_agent: str | None,
    failure_reason: str | None = None,
) -> AuthEvent:
    event = AuthEvent(
        attempted_email=email,
        success=failure_reason is None,
        failure_reason=failure_reason,
        employee_id=employee.id if employee is not None else None,
        ip=ip,
        user_agent=user_agent,
    )
    db.add(event)
    return event
