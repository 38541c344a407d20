from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.auth import Principal, get_current_principal
from app.db import get_db
from app.dependencies import get_client_ip, http_error
from app.schemas import OrderEditIn, PurchaseRequestIn
from app.security.csrf import verify_csrf
from app.services.approval_service import (
    ActionResult,
    LineEdit,
    apply_transition,
    complete_payment,
    complete_receipt,
    create_purchase_request,
    delete_order,
    download_order_workbook,
    edit_order,
)
from app.services.calendar_utils import business_today
from app.services.errors import PurchaseError
from app.services.filter_service import (
    FilterCriteria,
    QueueView,
    approval_queue,
    approval_queue_counts,
    default_employee_filter,
    display_rows,
    tab_counts,
)
from app.services.grouping_service import build_display_rows, display_row_to_dict, group_totals
from app.services.order_lines import line_to_dict
from app.services.purchase_order_service import NewOrderItem, NewOrderRequest, get_order_lines, list_order_lines
from app.services.spreadsheet_service import XLSX_MEDIA_TYPE
from app.services.status_service import Transition
from app.services.tab_service import Tab
from app.services.vendor_service import require_contact_of_vendor

router = APIRouter(prefix='/purchases', tags=['purchases'])


def _rows_payload(rows) -> list[dict]:
    totals = group_totals(row.line for row in rows)
    payload = []
    for row in rows:
        item = display_row_to_dict(row, line_serializer=line_to_dict)
        if row.is_group_header:
            item['group_total'] = str(totals[row.order_number])
        payload.append(item)
    return payload


def _action_payload(result: ActionResult) -> dict:
    return {
        'order_number': result.order_number,
        'action': result.action,
        'changed': result.changed,
        'lines': [line_to_dict(line) for line in result.lines],
        'warnings': result.warnings,
    }


@router.get('')
def list_purchases(
    tab: Tab = Tab.PENDING,
    employee: str | None = None,
    search: str = '',
    period_start: date | None = None,
    period_end: date | None = None,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    today = business_today()
    if employee is None:
        employee = default_employee_filter(principal.roles, tab, principal.name)
    criteria = FilterCriteria(
        tab=tab,
        employee=employee,
        search=search,
        period_start=period_start,
        period_end=period_end,
    )
    start, end = criteria.period(today)
    try:
        lines = list_order_lines(db, request_date_from=start, request_date_to=end)
    except PurchaseError as exc:
        raise http_error(exc) from exc

    rows = display_rows(lines, criteria, today=today, viewer_roles=principal.roles)
    return {
        'tab': tab.value,
        'employee': employee,
        'period_start': start.isoformat(),
        'period_end': end.isoformat(),
        'rows': _rows_payload(rows),
        'counts': tab_counts(
            lines,
            employee=employee,
            today=today,
            period_start=start,
            period_end=end,
            viewer_roles=principal.roles,
        ),
    }


@router.get('/approvals')
def list_approvals(
    view: QueueView = QueueView.PENDING,
    search: str = '',
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        lines = list_order_lines(db)
    except PurchaseError as exc:
        raise http_error(exc) from exc
    selected = approval_queue(lines, roles=principal.roles, view=view, search=search)
    return {
        'view': view.value,
        'rows': _rows_payload(build_display_rows(selected)),
        'counts': approval_queue_counts(lines, roles=principal.roles),
    }


@router.post('')
def create_purchase(
    payload: PurchaseRequestIn,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    new_request = NewOrderRequest(
        vendor_id=payload.vendor_id,
        contact_id=payload.contact_id,
        request_date=payload.request_date or business_today(),
        delivery_request_date=payload.delivery_request_date,
        progress_type=payload.progress_type,
        payment_category=payload.payment_category,
        request_type=payload.request_type,
        currency=payload.currency,
        project_vendor=payload.project_vendor,
        sales_order_number=payload.sales_order_number,
        project_item=payload.project_item,
        order_number=payload.order_number,
        items=[NewOrderItem(**item.model_dump()) for item in payload.items],
    )
    try:
        require_contact_of_vendor(db, vendor_id=payload.vendor_id, contact_id=payload.contact_id)
        result = create_purchase_request(db, principal=principal, request=new_request, ip=get_client_ip(request))
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return _action_payload(result)


@router.get('/{order_number}')
def purchase_detail(
    order_number: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        lines = get_order_lines(db, order_number=order_number)
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return {
        'order_number': order_number,
        'rows': _rows_payload(build_display_rows(lines)),
    }


@router.post('/{order_number}/payment')
def mark_payment_completed(
    order_number: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        result = complete_payment(db, principal=principal, order_number=order_number, ip=get_client_ip(request))
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return _action_payload(result)


@router.post('/{order_number}/receipt')
def mark_received(
    order_number: str,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        result = complete_receipt(db, principal=principal, order_number=order_number, ip=get_client_ip(request))
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return _action_payload(result)


@router.post('/{order_number}/{transition}')
def transition_order(
    order_number: str,
    transition: Transition,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        result = apply_transition(
            db,
            principal=principal,
            order_number=order_number,
            transition=transition,
            ip=get_client_ip(request),
        )
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return _action_payload(result)


@router.patch('/{order_number}')
def update_purchase(
    order_number: str,
    payload: OrderEditIn,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    order_changes = payload.model_dump(include={'delivery_request_date', 'vendor_id', 'contact_id'}, exclude_unset=True)
    try:
        if payload.vendor_id is not None:
            require_contact_of_vendor(db, vendor_id=payload.vendor_id, contact_id=payload.contact_id)
        result = edit_order(
            db,
            principal=principal,
            order_number=order_number,
            line_edits=[LineEdit(**line.model_dump()) for line in payload.lines],
            order_changes=order_changes,
            ip=get_client_ip(request),
        )
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return {
        'order_number': result.order_number,
        'ok': result.ok,
        'failures': result.failures,
        'outcomes': [
            {'line_number': outcome.line_number, 'ok': outcome.ok, 'error': outcome.error}
            for outcome in result.outcomes
        ],
        'lines': [line_to_dict(line) for line in result.lines],
    }


@router.delete('/{order_number}')
def remove_order(
    order_number: str,
    request: Request,
    confirmed: bool = False,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        deleted = delete_order(
            db,
            principal=principal,
            order_number=order_number,
            confirmed=confirmed,
            ip=get_client_ip(request),
        )
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return {'order_number': order_number, 'deleted_lines': deleted}


@router.delete('/{order_number}/lines/{line_number}')
def remove_order_line(
    order_number: str,
    line_number: int,
    request: Request,
    confirmed: bool = False,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        deleted = delete_order(
            db,
            principal=principal,
            order_number=order_number,
            line_number=line_number,
            confirmed=confirmed,
            ip=get_client_ip(request),
        )
    except PurchaseError as exc:
        raise http_error(exc) from exc
    return {'order_number': order_number, 'line_number': line_number, 'deleted_lines': deleted}


@router.get('/{order_number}/workbook')
def download_workbook(
    order_number: str,
    request: Request,
    upload: bool = False,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    try:
        download = download_order_workbook(
            db,
            principal=principal,
            order_number=order_number,
            upload=upload,
            ip=get_client_ip(request),
        )
    except PurchaseError as exc:
        raise http_error(exc) from exc
    headers = {'Content-Disposition': f'attachment; filename="{download.filename}"'}
    if download.warnings:
        headers['X-Warnings'] = '; '.join(download.warnings)
    return Response(content=download.content, media_type=XLSX_MEDIA_TYPE, headers=headers)
