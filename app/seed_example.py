from sqlalchemy import select

from app.auth import PurchaseRole
from app.db import SessionLocal, engine
from app.models import Base, Employee, Vendor, VendorContact
from app.security.passwords import hash_password

DEMO_EMPLOYEES = [
    ('admin@example.com', 'Admin', 'adminpass', [PurchaseRole.APP_ADMIN]),
    ('middle@example.com', 'Middle Manager', 'middlepass', [PurchaseRole.MIDDLE_MANAGER]),
    ('final@example.com', 'Final Approver', 'finalpass', [PurchaseRole.FINAL_APPROVER]),
    ('buyer@example.com', 'Lead Buyer', 'buyerpass', [PurchaseRole.LEAD_BUYER, PurchaseRole.PURCHASE_MANAGER]),
    ('staff@example.com', 'Staff', 'staffpass', []),
]


def seed() -> None:
    Base.metadata.create_all(engine)
    with SessionLocal() as db:
        for email, name, password, roles in DEMO_EMPLOYEES:
            employee = db.execute(select(Employee).where(Employee.email == email)).scalar_one_or_none()
            if not employee:
                db.add(
                    Employee(
                        email=email,
                        name=name,
                        password_hash=hash_password(password),
                        purchase_roles=[role.value for role in roles],
                        active=True,
                    )
                )

        vendor = db.execute(select(Vendor).where(Vendor.name == 'Demo Supply Co.')).scalar_one_or_none()
        if not vendor:
            vendor = Vendor(name='Demo Supply Co.', phone='02-000-0000', fax='02-000-0001', active=True)
            db.add(vendor)
            db.flush()
            db.add(VendorContact(vendor_id=vendor.id, contact_name='Demo Contact', email='sales@example.com', active=True))

        db.commit()


if __name__ == '__main__':
    seed()
