from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.auth import Principal
from app.models import (
    ApprovalStatus,
    OrderNotification,
    PaymentCategory,
    ProgressType,
    PurchaseOrderLine,
    RequestType,
    Vendor,
    VendorContact,
)
from app.services.errors import OrderNotFound, StorageError, ValidationFailed
from app.services.order_lines import OrderLine, line_from_row

logger = logging.getLogger(__name__)

ORDER_NUMBER_PATTERN = re.compile(r'^F(\d{8})_(\d{3,})$')

# Fields shared by every line of an order.
ORDER_LEVEL_FIELDS = frozenset(
    {
        'vendor_id',
        'contact_id',
        'request_date',
        'delivery_request_date',
        'progress_type',
        'payment_category',
        'request_type',
        'currency',
        'project_vendor',
        'sales_order_number',
        'project_item',
        'middle_manager_status',
        'final_manager_status',
        'final_manager_approved_at',
        'is_payment_completed',
        'payment_completed_at',
        'is_received',
        'received_at',
        'is_po_downloaded',
    }
)
LINE_LEVEL_FIELDS = frozenset({'item_name', 'specification', 'quantity', 'unit_price', 'remark', 'link'})


@dataclass(frozen=True)
class NewOrderItem:
    item_name: str
    quantity: int
    unit_price: Decimal
    specification: str | None = None
    remark: str | None = None
    link: str | None = None


@dataclass(frozen=True)
class NewOrderRequest:
    vendor_id: int | None
    request_date: date
    items: list[NewOrderItem] = field(default_factory=list)
    contact_id: int | None = None
    delivery_request_date: date | None = None
    progress_type: ProgressType = ProgressType.NORMAL
    payment_category: PaymentCategory = PaymentCategory.ORDER
    request_type: RequestType = RequestType.RAW_MATERIAL
    currency: str = 'KRW'
    project_vendor: str | None = None
    sales_order_number: str | None = None
    project_item: str | None = None
    order_number: str | None = None


def compute_amount(quantity, unit_price) -> Decimal:
    return (Decimal(int(quantity)) * Decimal(str(unit_price))).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def parse_quantity(value, *, field_name: str = 'quantity') -> int:
    raw = str(value if value is not None else '').strip()
    try:
        parsed = int(raw)
    except ValueError as exc:
        raise ValidationFailed(f'Invalid {field_name}') from exc
    if parsed < 0:
        raise ValidationFailed(f'{field_name} cannot be negative')
    return parsed


def parse_price(value, *, field_name: str = 'unit price') -> Decimal:
    raw = str(value if value is not None else '').replace(',', '').strip()
    try:
        parsed = Decimal(raw)
    except InvalidOperation as exc:
        raise ValidationFailed(f'Invalid {field_name}') from exc
    if parsed < 0:
        raise ValidationFailed(f'{field_name} cannot be negative')
    return parsed


def require_order_number(order_number: str | None) -> str:
    value = (order_number or '').strip()
    if not value:
        raise ValidationFailed('Order number is required')
    return value


def _lines_query():
    return (
        select(PurchaseOrderLine, Vendor.name, VendorContact.contact_name)
        .outerjoin(Vendor, Vendor.id == PurchaseOrderLine.vendor_id)
        .outerjoin(VendorContact, VendorContact.id == PurchaseOrderLine.contact_id)
    )


def list_order_lines(
    db: Session,
    *,
    requester_name: str | None = None,
    request_date_from: date | None = None,
    request_date_to: date | None = None,
    order_numbers: list[str] | None = None,
) -> list[OrderLine]:
    stmt = _lines_query()
    if requester_name:
        stmt = stmt.where(PurchaseOrderLine.requester_name == requester_name)
    if request_date_from:
        stmt = stmt.where(PurchaseOrderLine.request_date >= request_date_from)
    if request_date_to:
        stmt = stmt.where(PurchaseOrderLine.request_date <= request_date_to)
    if order_numbers is not None:
        stmt = stmt.where(PurchaseOrderLine.order_number.in_(order_numbers))
    stmt = stmt.order_by(
        PurchaseOrderLine.request_date.desc(),
        PurchaseOrderLine.order_number.desc(),
        PurchaseOrderLine.line_number.asc(),
    )
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load purchase order lines')
        raise StorageError('Could not load purchase orders') from exc
    return [line_from_row(row, vendor_name=vendor_name, contact_name=contact_name) for row, vendor_name, contact_name in rows]


def get_order_lines(db: Session, *, order_number: str) -> list[OrderLine]:
    order_number = require_order_number(order_number)
    lines = list_order_lines(db, order_numbers=[order_number])
    if not lines:
        raise OrderNotFound(f'Order {order_number} not found')
    return lines


def get_order_header(db: Session, *, order_number: str) -> PurchaseOrderLine:
    order_number = require_order_number(order_number)
    try:
        header = db.execute(
            select(PurchaseOrderLine)
            .where(PurchaseOrderLine.order_number == order_number)
            .order_by(PurchaseOrderLine.line_number.asc())
            .limit(1)
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        logger.exception('Failed to load order %s', order_number)
        raise StorageError(f'Could not load order {order_number}') from exc
    if header is None:
        raise OrderNotFound(f'Order {order_number} not found')
    return header


def next_order_number(db: Session, *, request_date: date) -> str:
    prefix = f'F{request_date:%Y%m%d}_'
    existing = db.execute(
        select(PurchaseOrderLine.order_number).where(PurchaseOrderLine.order_number.like(f'{prefix}%')).distinct()
    ).scalars().all()
    highest = 0
    for number in existing:
        match = ORDER_NUMBER_PATTERN.match(number or '')
        if match:
            highest = max(highest, int(match.group(2)))
    return f'{prefix}{highest + 1:03d}'


def _validate_request(request: NewOrderRequest) -> None:
    if not request.vendor_id:
        raise ValidationFailed('Vendor is required')
    if not request.items:
        raise ValidationFailed('At least one item is required')
    for index, item in enumerate(request.items, start=1):
        if not (item.item_name or '').strip():
            raise ValidationFailed(f'Item name is required on line {index}')
        if int(item.quantity) < 0:
            raise ValidationFailed(f'Quantity cannot be negative on line {index}')
        if Decimal(str(item.unit_price)) < 0:
            raise ValidationFailed(f'Unit price cannot be negative on line {index}')


def create_order(db: Session, *, requester: Principal, request: NewOrderRequest) -> str:
    """Insert every line of a new order in one flush; the caller owns the commit."""
    _validate_request(request)
    order_number = (request.order_number or '').strip() or next_order_number(db, request_date=request.request_date)
    taken = db.execute(
        select(PurchaseOrderLine.id).where(PurchaseOrderLine.order_number == order_number).limit(1)
    ).first()
    if taken:
        raise ValidationFailed(f'Order number {order_number} already exists')

    for line_number, item in enumerate(request.items, start=1):
        db.add(
            PurchaseOrderLine(
                order_number=order_number,
                line_number=line_number,
                item_name=item.item_name.strip(),
                specification=item.specification,
                quantity=int(item.quantity),
                unit_price=Decimal(str(item.unit_price)),
                amount=compute_amount(item.quantity, item.unit_price),
                remark=item.remark,
                link=item.link,
                currency=request.currency,
                requester_id=requester.id,
                requester_name=requester.name,
                vendor_id=request.vendor_id,
                contact_id=request.contact_id,
                request_type=request.request_type,
                request_date=request.request_date,
                delivery_request_date=request.delivery_request_date,
                progress_type=request.progress_type,
                payment_category=request.payment_category,
                project_vendor=request.project_vendor,
                sales_order_number=request.sales_order_number,
                project_item=request.project_item,
                middle_manager_status=ApprovalStatus.PENDING,
                final_manager_status=ApprovalStatus.PENDING,
            )
        )
    db.flush()
    logger.info('Created order %s with %d line(s) for %s', order_number, len(request.items), requester.name)
    return order_number


def update_order_fields(db: Session, *, order_number: str, changes: dict, line_number: int | None = None) -> int:
    unknown = set(changes) - ORDER_LEVEL_FIELDS - LINE_LEVEL_FIELDS - {'amount'}
    if unknown:
        raise ValidationFailed(f'Unknown fields: {", ".join(sorted(unknown))}')
    if line_number is None and set(changes) & (LINE_LEVEL_FIELDS | {'amount'}):
        raise ValidationFailed('Item fields can only be updated per line')

    stmt = update(PurchaseOrderLine).where(PurchaseOrderLine.order_number == order_number)
    if line_number is not None:
        stmt = stmt.where(PurchaseOrderLine.line_number == line_number)
    result = db.execute(stmt.values(**changes, updated_at=func.now()))
    return result.rowcount or 0


def delete_order_rows(db: Session, *, order_number: str, line_number: int | None = None) -> int:
    stmt = delete(PurchaseOrderLine).where(PurchaseOrderLine.order_number == order_number)
    if line_number is not None:
        stmt = stmt.where(PurchaseOrderLine.line_number == line_number)
    else:
        db.execute(delete(OrderNotification).where(OrderNotification.order_number == order_number))
    result = db.execute(stmt)
    return result.rowcount or 0
