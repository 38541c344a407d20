from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models import Vendor, VendorContact
from app.services.errors import ValidationFailed

logger = logging.getLogger(__name__)

VENDOR_FIELDS = ('phone', 'fax', 'payment_schedule')
CONTACT_FIELDS = ('email', 'phone', 'position')


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _clean(value: str | None) -> str | None:
    text = (value or '').strip()
    return text or None


def vendor_to_dict(vendor: Vendor, contacts: list[VendorContact] | None = None) -> dict:
    payload = {
        'id': vendor.id,
        'name': vendor.name,
        'phone': vendor.phone,
        'fax': vendor.fax,
        'payment_schedule': vendor.payment_schedule,
        'active': vendor.active,
    }
    if contacts is not None:
        payload['contacts'] = [contact_to_dict(contact) for contact in contacts]
    return payload


def contact_to_dict(contact: VendorContact) -> dict:
    return {
        'id': contact.id,
        'vendor_id': contact.vendor_id,
        'contact_name': contact.contact_name,
        'email': contact.email,
        'phone': contact.phone,
        'position': contact.position,
    }


def list_vendors(db: Session, *, search: str = '', include_inactive: bool = False) -> list[Vendor]:
    stmt = select(Vendor)
    if not include_inactive:
        stmt = stmt.where(Vendor.active.is_(True))
    term = search.strip()
    if term:
        stmt = stmt.where(Vendor.name.ilike(f'%{term}%'))
    return db.execute(stmt.order_by(Vendor.name.asc())).scalars().all()


def get_vendor(db: Session, vendor_id: int) -> Vendor:
    vendor = db.get(Vendor, vendor_id)
    if vendor is None:
        raise ValidationFailed('Vendor not found')
    return vendor


def create_vendor(db: Session, *, name: str, phone: str | None = None, fax: str | None = None, payment_schedule: str | None = None) -> Vendor:
    clean_name = _clean(name)
    if not clean_name:
        raise ValidationFailed('Vendor name is required')
    existing = db.execute(select(Vendor.id).where(func.lower(Vendor.name) == clean_name.lower())).first()
    if existing:
        raise ValidationFailed(f'Vendor {clean_name} already exists')

    vendor = Vendor(name=clean_name, phone=_clean(phone), fax=_clean(fax), payment_schedule=_clean(payment_schedule), active=True)
    db.add(vendor)
    try:
        db.flush()
    except IntegrityError as exc:
        db.rollback()
        raise ValidationFailed(f'Vendor {clean_name} already exists') from exc
    logger.info('Created vendor %s', clean_name)
    return vendor


def update_vendor(db: Session, *, vendor_id: int, changes: dict) -> Vendor:
    vendor = get_vendor(db, vendor_id)
    if 'name' in changes:
        clean_name = _clean(changes['name'])
        if not clean_name:
            raise ValidationFailed('Vendor name is required')
        vendor.name = clean_name
    for attr in VENDOR_FIELDS:
        if attr in changes:
            setattr(vendor, attr, _clean(changes[attr]))
    if 'active' in changes:
        vendor.active = bool(changes['active'])
    vendor.updated_at = _now()
    return vendor


def list_contacts(db: Session, *, vendor_id: int) -> list[VendorContact]:
    return db.execute(
        select(VendorContact)
        .where(VendorContact.vendor_id == vendor_id, VendorContact.active.is_(True))
        .order_by(VendorContact.contact_name.asc())
    ).scalars().all()


def add_contact(
    db: Session,
    *,
    vendor_id: int,
    contact_name: str,
    email: str | None = None,
    phone: str | None = None,
    position: str | None = None,
) -> VendorContact:
    get_vendor(db, vendor_id)
    clean_name = _clean(contact_name)
    if not clean_name:
        raise ValidationFailed('Contact name is required')
    contact = VendorContact(
        vendor_id=vendor_id,
        contact_name=clean_name,
        email=_clean(email),
        phone=_clean(phone),
        position=_clean(position),
        active=True,
    )
    db.add(contact)
    db.flush()
    return contact


def require_contact_of_vendor(db: Session, *, vendor_id: int, contact_id: int | None) -> None:
    if contact_id is None:
        return
    contact = db.get(VendorContact, contact_id)
    if contact is None or contact.vendor_id != vendor_id:
        raise ValidationFailed('Contact does not belong to the selected vendor')
