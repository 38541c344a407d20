"""Role-gated actions on purchase orders.

Every handler checks the actor's roles before touching storage, validates its
identifiers before any query is issued, writes its changes restricted to one
order number and commits once. Chat notifications run after the commit and can
only add warnings to the result.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.auth import Principal, PurchaseRole, has_any_role, is_admin_tier
from app.config import settings
from app.models import ApprovalStatus, PaymentCategory, ProgressType, Vendor, VendorContact
from app.services.audit_service import OrderAction, record_order_event, record_transition
from app.services.errors import InvalidTransition, OrderNotFound, PermissionDenied, StorageError, ValidationFailed
from app.services.notification_service import notify_final_approved, notify_new_request, notify_verified
from app.services.order_lines import OrderLine
from app.services.purchase_order_service import (
    NewOrderRequest,
    compute_amount,
    create_order,
    delete_order_rows,
    get_order_header,
    get_order_lines,
    parse_price,
    parse_quantity,
    require_order_number,
    update_order_fields,
)
from app.services.spreadsheet_service import WorkbookHeader, build_purchase_order_workbook, workbook_filename
from app.services.status_service import (
    NOTIFYING_TRANSITIONS,
    StatusPair,
    Transition,
    can_perform,
    coerce_status,
    plan_transition,
)
from app.services import storage_service

logger = logging.getLogger(__name__)

DELETE_ROLES = (PurchaseRole.FINAL_APPROVER,)
EDIT_ROLES = (PurchaseRole.PURCHASE_MANAGER, PurchaseRole.LEAD_BUYER)
PAYMENT_ROLES = (PurchaseRole.PURCHASE_MANAGER,)
DOWNLOAD_MARK_ROLES = (PurchaseRole.PURCHASE_MANAGER, PurchaseRole.LEAD_BUYER)

ORDER_EDIT_FIELDS = frozenset({'delivery_request_date', 'vendor_id', 'contact_id'})

_TRANSITION_NOTIFIERS = {
    Transition.VERIFY: notify_verified,
    Transition.APPROVE: notify_final_approved,
}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass
class ActionResult:
    order_number: str
    action: str
    changed: bool
    lines: list[OrderLine] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class LineEdit:
    line_number: int
    item_name: str | None = None
    specification: str | None = None
    quantity: int | None = None
    unit_price: object | None = None
    remark: str | None = None
    link: str | None = None

    def changes(self, current: OrderLine) -> dict:
        updates: dict = {}
        if self.item_name is not None:
            name = self.item_name.strip()
            if not name:
                raise ValidationFailed(f'Item name is required on line {self.line_number}')
            updates['item_name'] = name
        for attr in ('specification', 'remark', 'link'):
            value = getattr(self, attr)
            if value is not None:
                updates[attr] = value
        if self.quantity is not None:
            updates['quantity'] = parse_quantity(self.quantity, field_name=f'quantity on line {self.line_number}')
        if self.unit_price is not None:
            updates['unit_price'] = parse_price(self.unit_price, field_name=f'unit price on line {self.line_number}')
        if 'quantity' in updates or 'unit_price' in updates:
            updates['amount'] = compute_amount(
                updates.get('quantity', current.quantity),
                updates.get('unit_price', current.unit_price),
            )
        return updates


@dataclass(frozen=True)
class LineOutcome:
    line_number: int
    ok: bool
    error: str | None = None


@dataclass
class EditResult:
    order_number: str
    outcomes: list[LineOutcome] = field(default_factory=list)
    order_error: str | None = None
    lines: list[OrderLine] = field(default_factory=list)

    @property
    def failures(self) -> list[str]:
        messages = [f'Line {outcome.line_number}: {outcome.error}' for outcome in self.outcomes if not outcome.ok]
        if self.order_error:
            messages.append(f'Order fields: {self.order_error}')
        return messages

    @property
    def ok(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class WorkbookDownload:
    filename: str
    content: bytes
    storage_key: str | None = None
    warnings: tuple[str, ...] = ()


def _commit(db: Session, *, order_number: str, action: str) -> None:
    try:
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to %s order %s', action, order_number)
        raise StorageError(f'Could not {action} order {order_number}') from exc


def _notify(db: Session, notifier, lines: list[OrderLine]) -> list[str]:
    try:
        warnings = notifier(db, lines=lines)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning('Could not record notifications for %s: %s', lines[0].order_number, exc)
        return ['Notification records could not be saved']
    return warnings


def create_purchase_request(
    db: Session,
    *,
    principal: Principal,
    request: NewOrderRequest,
    ip: str | None = None,
) -> ActionResult:
    try:
        order_number = create_order(db, requester=principal, request=request)
        record_order_event(
            db,
            actor=principal,
            action=OrderAction.CREATED,
            order_number=order_number,
            ip=ip,
            after=StatusPair(),
            details={'lines': len(request.items)},
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to create purchase request for %s', principal.name)
        raise StorageError('Could not create purchase request') from exc
    _commit(db, order_number=order_number, action='create')

    lines = get_order_lines(db, order_number=order_number)
    warnings = _notify(db, notify_new_request, lines)
    return ActionResult(order_number=order_number, action='create', changed=True, lines=lines, warnings=warnings)


def apply_transition(
    db: Session,
    *,
    principal: Principal,
    order_number: str | None,
    transition: Transition | str,
    ip: str | None = None,
    now: datetime | None = None,
) -> ActionResult:
    transition = Transition(transition)
    if not can_perform(principal.roles, transition):
        raise PermissionDenied(f'Not allowed to {transition.value} this order')
    order_number = require_order_number(order_number)

    try:
        header = get_order_header(db, order_number=order_number)
        plan = plan_transition(transition, StatusPair.of(header), principal.roles, now=now or _now())
        if plan.changed:
            update_order_fields(db, order_number=order_number, changes=plan.changes)
            record_transition(
                db,
                actor=principal,
                transition=transition,
                order_number=order_number,
                before=plan.before,
                after=plan.after,
                ip=ip,
            )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to %s order %s', transition.value, order_number)
        raise StorageError(f'Could not {transition.value} order {order_number}') from exc

    if plan.changed:
        _commit(db, order_number=order_number, action=transition.value)
        logger.info('%s applied %s to %s', principal.name, transition.value, order_number)

    lines = get_order_lines(db, order_number=order_number)
    warnings: list[str] = []
    if plan.changed and transition in NOTIFYING_TRANSITIONS:
        warnings = _notify(db, _TRANSITION_NOTIFIERS[transition], lines)
    return ActionResult(
        order_number=order_number,
        action=transition.value,
        changed=plan.changed,
        lines=lines,
        warnings=warnings,
    )


def _released_for_purchasing(header) -> bool:
    return (
        ProgressType(header.progress_type) == ProgressType.ADVANCE
        or coerce_status(header.final_manager_status) == ApprovalStatus.APPROVED
    )


def _set_flag(
    db: Session,
    *,
    principal: Principal,
    order_number: str,
    action: str,
    audit_action: OrderAction,
    flag: str,
    stamp_field: str,
    at: datetime,
    ip: str | None,
) -> ActionResult:
    try:
        update_order_fields(db, order_number=order_number, changes={flag: True, stamp_field: at})
        record_order_event(
            db,
            actor=principal,
            action=audit_action,
            order_number=order_number,
            ip=ip,
            details={stamp_field: at.isoformat()},
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to record %s for %s', action, order_number)
        raise StorageError(f'Could not update order {order_number}') from exc
    _commit(db, order_number=order_number, action='update')
    lines = get_order_lines(db, order_number=order_number)
    return ActionResult(order_number=order_number, action=action, changed=True, lines=lines)


def complete_payment(
    db: Session,
    *,
    principal: Principal,
    order_number: str | None,
    ip: str | None = None,
    now: datetime | None = None,
) -> ActionResult:
    if not has_any_role(principal.roles, *PAYMENT_ROLES):
        raise PermissionDenied('Not allowed to complete payment')
    order_number = require_order_number(order_number)
    header = get_order_header(db, order_number=order_number)
    if PaymentCategory(header.payment_category) != PaymentCategory.PURCHASE_REQUEST:
        raise InvalidTransition('Only purchase requests are paid through purchasing')
    if not _released_for_purchasing(header):
        raise InvalidTransition('Order has not been released for purchasing')
    if header.is_payment_completed:
        return ActionResult(
            order_number=order_number,
            action='payment',
            changed=False,
            lines=get_order_lines(db, order_number=order_number),
        )
    return _set_flag(
        db,
        principal=principal,
        order_number=order_number,
        action='payment',
        audit_action=OrderAction.PAYMENT_COMPLETED,
        flag='is_payment_completed',
        stamp_field='payment_completed_at',
        at=now or _now(),
        ip=ip,
    )


def complete_receipt(
    db: Session,
    *,
    principal: Principal,
    order_number: str | None,
    ip: str | None = None,
    now: datetime | None = None,
) -> ActionResult:
    order_number = require_order_number(order_number)
    header = get_order_header(db, order_number=order_number)
    if not (is_admin_tier(principal.roles) or header.requester_id == principal.id):
        raise PermissionDenied('Only the requester can confirm receipt')
    if not _released_for_purchasing(header):
        raise InvalidTransition('Order has not been released for purchasing')
    if header.is_received:
        return ActionResult(
            order_number=order_number,
            action='receipt',
            changed=False,
            lines=get_order_lines(db, order_number=order_number),
        )
    return _set_flag(
        db,
        principal=principal,
        order_number=order_number,
        action='receipt',
        audit_action=OrderAction.RECEIPT_COMPLETED,
        flag='is_received',
        stamp_field='received_at',
        at=now or _now(),
        ip=ip,
    )


def can_delete(roles) -> bool:
    return has_any_role(roles, *DELETE_ROLES)


def can_edit(roles) -> bool:
    return has_any_role(roles, *EDIT_ROLES)


def delete_order(
    db: Session,
    *,
    principal: Principal,
    order_number: str | None,
    confirmed: bool,
    line_number: int | None = None,
    ip: str | None = None,
) -> int:
    """Remove a whole order, or one line of it; returns the number of deleted lines."""
    if not can_delete(principal.roles):
        raise PermissionDenied('Not allowed to delete orders')
    order_number = require_order_number(order_number)
    if not confirmed:
        raise ValidationFailed('Deletion must be confirmed')

    try:
        deleted = delete_order_rows(db, order_number=order_number, line_number=line_number)
        if not deleted:
            db.rollback()
            raise OrderNotFound(f'Order {order_number} not found')
        record_order_event(
            db,
            actor=principal,
            action=OrderAction.DELETED if line_number is None else OrderAction.LINE_DELETED,
            order_number=order_number,
            ip=ip,
            details={'line_number': line_number, 'deleted': deleted},
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Failed to delete order %s', order_number)
        raise StorageError(f'Could not delete order {order_number}') from exc
    _commit(db, order_number=order_number, action='delete')
    logger.info('%s deleted %d line(s) of %s', principal.name, deleted, order_number)
    return deleted


def edit_order(
    db: Session,
    *,
    principal: Principal,
    order_number: str | None,
    line_edits: list[LineEdit],
    order_changes: dict | None = None,
    ip: str | None = None,
) -> EditResult:
    if not can_edit(principal.roles):
        raise PermissionDenied('Not allowed to edit orders')
    order_number = require_order_number(order_number)
    order_changes = dict(order_changes or {})
    unknown = set(order_changes) - ORDER_EDIT_FIELDS
    if unknown:
        raise ValidationFailed(f'Cannot edit order fields: {", ".join(sorted(unknown))}')

    current = {line.line_number: line for line in get_order_lines(db, order_number=order_number)}
    result = EditResult(order_number=order_number)

    for edit in line_edits:
        existing = current.get(edit.line_number)
        if existing is None:
            result.outcomes.append(LineOutcome(edit.line_number, ok=False, error='line not found'))
            continue
        try:
            changes = edit.changes(existing)
            if changes:
                with db.begin_nested():
                    update_order_fields(db, order_number=order_number, changes=changes, line_number=edit.line_number)
        except (ValidationFailed, SQLAlchemyError) as exc:
            logger.warning('Edit of %s line %s failed: %s', order_number, edit.line_number, exc)
            result.outcomes.append(LineOutcome(edit.line_number, ok=False, error=str(exc)))
            continue
        result.outcomes.append(LineOutcome(edit.line_number, ok=True))

    if order_changes:
        try:
            with db.begin_nested():
                update_order_fields(db, order_number=order_number, changes=order_changes)
        except SQLAlchemyError as exc:
            logger.warning('Order-level edit of %s failed: %s', order_number, exc)
            result.order_error = str(exc)

    record_order_event(
        db,
        actor=principal,
        action=OrderAction.EDITED,
        order_number=order_number,
        ip=ip,
        details={'lines': [edit.line_number for edit in line_edits], 'failures': result.failures},
    )
    _commit(db, order_number=order_number, action='edit')
    result.lines = get_order_lines(db, order_number=order_number)
    return result


def _workbook_header(db: Session, lines: list[OrderLine]) -> WorkbookHeader:
    first = lines[0]
    vendor = db.get(Vendor, first.vendor_id) if first.vendor_id else None
    contact = db.get(VendorContact, first.contact_id) if first.contact_id else None
    return WorkbookHeader(
        order_number=first.order_number,
        requester_name=first.requester_name,
        request_date=first.request_date,
        delivery_request_date=first.delivery_request_date,
        vendor_name=vendor.name if vendor else (first.vendor_name or ''),
        contact_name=contact.contact_name if contact else (first.contact_name or ''),
        vendor_phone=(vendor.phone if vendor else None) or '',
        vendor_fax=(vendor.fax if vendor else None) or '',
        company_address=settings.company_address,
        project_vendor=first.project_vendor or '',
        sales_order_number=first.sales_order_number or '',
        project_item=first.project_item or '',
    )


def download_order_workbook(
    db: Session,
    *,
    principal: Principal,
    order_number: str | None,
    upload: bool = False,
    ip: str | None = None,
) -> WorkbookDownload:
    order_number = require_order_number(order_number)
    lines = get_order_lines(db, order_number=order_number)
    if not _released_for_purchasing(lines[0]):
        raise InvalidTransition('Purchase order is available once the order is approved or marked advance')

    content = build_purchase_order_workbook(_workbook_header(db, lines), lines)
    warnings: list[str] = []
    storage_key = None
    if upload and storage_service.storage_enabled():
        try:
            storage_key = storage_service.put_order_file(order_number, content)
        except StorageError as exc:
            warnings.append(str(exc))

    if has_any_role(principal.roles, *DOWNLOAD_MARK_ROLES) and not lines[0].is_po_downloaded:
        try:
            update_order_fields(db, order_number=order_number, changes={'is_po_downloaded': True})
            record_order_event(db, actor=principal, action=OrderAction.PO_DOWNLOADED, order_number=order_number, ip=ip)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.warning('Could not mark %s as downloaded: %s', order_number, exc)
            warnings.append('Download could not be recorded')

    return WorkbookDownload(
        filename=workbook_filename(order_number),
        content=content,
        storage_key=storage_key,
        warnings=tuple(warnings),
    )

