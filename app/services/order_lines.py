from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from app.models import ApprovalStatus, PaymentCategory, ProgressType, RequestType


@dataclass(frozen=True)
class OrderLine:
    """Read-side snapshot of one purchase-order line joined with vendor/contact names."""

    order_number: str
    line_number: int
    item_name: str
    requester_name: str
    request_date: date | None
    specification: str | None = None
    quantity: int = 0
    unit_price: Decimal = Decimal('0')
    amount: Decimal = Decimal('0')
    remark: str | None = None
    link: str | None = None
    currency: str = 'KRW'
    vendor_id: int | None = None
    vendor_name: str | None = None
    contact_id: int | None = None
    contact_name: str | None = None
    request_type: RequestType = RequestType.RAW_MATERIAL
    delivery_request_date: date | None = None
    progress_type: ProgressType = ProgressType.NORMAL
    payment_category: PaymentCategory = PaymentCategory.ORDER
    project_vendor: str | None = None
    sales_order_number: str | None = None
    project_item: str | None = None
    middle_manager_status: ApprovalStatus = ApprovalStatus.PENDING
    final_manager_status: ApprovalStatus = ApprovalStatus.PENDING
    final_manager_approved_at: datetime | None = None
    is_payment_completed: bool = False
    payment_completed_at: datetime | None = None
    is_received: bool = False
    received_at: datetime | None = None
    is_po_downloaded: bool = False
    id: int | None = None


def line_from_row(row, *, vendor_name: str | None = None, contact_name: str | None = None) -> OrderLine:
    return OrderLine(
        id=row.id,
        order_number=row.order_number,
        line_number=int(row.line_number),
        item_name=row.item_name,
        specification=row.specification,
        quantity=int(row.quantity or 0),
        unit_price=Decimal(row.unit_price or 0),
        amount=Decimal(row.amount or 0),
        remark=row.remark,
        link=row.link,
        currency=row.currency,
        requester_name=row.requester_name,
        vendor_id=row.vendor_id,
        vendor_name=vendor_name,
        contact_id=row.contact_id,
        contact_name=contact_name,
        request_type=row.request_type,
        request_date=row.request_date,
        delivery_request_date=row.delivery_request_date,
        progress_type=row.progress_type,
        payment_category=row.payment_category,
        project_vendor=row.project_vendor,
        sales_order_number=row.sales_order_number,
        project_item=row.project_item,
        middle_manager_status=row.middle_manager_status,
        final_manager_status=row.final_manager_status,
        final_manager_approved_at=row.final_manager_approved_at,
        is_payment_completed=bool(row.is_payment_completed),
        payment_completed_at=row.payment_completed_at,
        is_received=bool(row.is_received),
        received_at=row.received_at,
        is_po_downloaded=bool(row.is_po_downloaded),
    )


def line_to_dict(line: OrderLine) -> dict:
    return {
        'id': line.id,
        'order_number': line.order_number,
        'line_number': line.line_number,
        'item_name': line.item_name,
        'specification': line.specification,
        'quantity': line.quantity,
        'unit_price': str(line.unit_price),
        'amount': str(line.amount),
        'remark': line.remark,
        'link': line.link,
        'currency': line.currency,
        'requester_name': line.requester_name,
        'vendor_id': line.vendor_id,
        'vendor_name': line.vendor_name,
        'contact_id': line.contact_id,
        'contact_name': line.contact_name,
        'request_type': line.request_type.value,
        'request_date': line.request_date.isoformat() if line.request_date else None,
        'delivery_request_date': line.delivery_request_date.isoformat() if line.delivery_request_date else None,
        'progress_type': line.progress_type.value,
        'payment_category': line.payment_category.value,
        'project_vendor': line.project_vendor,
        'sales_order_number': line.sales_order_number,
        'project_item': line.project_item,
        'middle_manager_status': line.middle_manager_status.value,
        'final_manager_status': line.final_manager_status.value,
        'final_manager_approved_at': line.final_manager_approved_at,
        'is_payment_completed': line.is_payment_completed,
        'payment_completed_at': line.payment_completed_at,
        'is_received': line.is_received,
        'received_at': line.received_at,
        'is_po_downloaded': line.is_po_downloaded,
    }
