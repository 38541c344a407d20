from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from app.auth import Principal, PurchaseRole, get_current_principal, require_any_role
from app.db import get_db
from app.dependencies import get_client_ip, http_error
from app.schemas import ContactIn, VendorIn, VendorUpdateIn
from app.security.csrf import verify_csrf
from app.services.audit_service import AccountAction, record_account_event
from app.services.errors import PurchaseError
from app.services.vendor_service import (
    add_contact,
    contact_to_dict,
    create_vendor,
    list_contacts,
    list_vendors,
    update_vendor,
    vendor_to_dict,
)

router = APIRouter(prefix='/vendors', tags=['vendors'])
vendor_admin_access = require_any_role(PurchaseRole.PURCHASE_MANAGER, PurchaseRole.LEAD_BUYER)


@router.get('')
def vendors_index(
    search: str = '',
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {'vendors': [vendor_to_dict(vendor) for vendor in list_vendors(db, search=search)]}


@router.post('')
def vendors_create(
    payload: VendorIn,
    request: Request,
    principal: Principal = Depends(vendor_admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        vendor = create_vendor(db, **payload.model_dump())
    except PurchaseError as exc:
        raise http_error(exc) from exc
    record_account_event(
        db,
        actor_employee_id=principal.id,
        action=AccountAction.VENDOR_CREATED,
        ip=get_client_ip(request),
        details={'vendor_id': vendor.id, 'name': vendor.name},
    )
    db.commit()
    return vendor_to_dict(vendor, contacts=[])


@router.patch('/{vendor_id}')
def vendors_update(
    vendor_id: int,
    payload: VendorUpdateIn,
    request: Request,
    principal: Principal = Depends(vendor_admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    changes = payload.model_dump(exclude_unset=True)
    try:
        vendor = update_vendor(db, vendor_id=vendor_id, changes=changes)
    except PurchaseError as exc:
        raise http_error(exc) from exc
    record_account_event(
        db,
        actor_employee_id=principal.id,
        action=AccountAction.VENDOR_UPDATED,
        ip=get_client_ip(request),
        details={'vendor_id': vendor_id, 'fields': sorted(changes)},
    )
    db.commit()
    return vendor_to_dict(vendor)


@router.get('/{vendor_id}/contacts')
def vendor_contacts(
    vendor_id: int,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
):
    return {'contacts': [contact_to_dict(contact) for contact in list_contacts(db, vendor_id=vendor_id)]}


@router.post('/{vendor_id}/contacts')
def vendor_contacts_add(
    vendor_id: int,
    payload: ContactIn,
    request: Request,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        contact = add_contact(db, vendor_id=vendor_id, **payload.model_dump())
    except PurchaseError as exc:
        raise http_error(exc) from exc
    record_account_event(
        db,
        actor_employee_id=principal.id,
        action=AccountAction.VENDOR_CONTACT_ADDED,
        ip=get_client_ip(request),
        details={'vendor_id': vendor_id, 'contact_id': contact.id},
    )
    db.commit()
    return contact_to_dict(contact)
