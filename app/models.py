from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import ARRAY, CITEXT, INET
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class ApprovalStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    REJECTED = 'rejected'


class ProgressType(str, Enum):
    NORMAL = 'normal'
    ADVANCE = 'advance'


class PaymentCategory(str, Enum):
    ORDER = 'order'
    PURCHASE_REQUEST = 'purchase_request'
    ON_SITE_PAYMENT = 'on_site_payment'


class RequestType(str, Enum):
    RAW_MATERIAL = 'raw_material'
    CONSUMABLE = 'consumable'


class NotificationKind(str, Enum):
    NEW_REQUEST = 'new_request'
    VERIFIED = 'verified'
    FINAL_APPROVED = 'final_approved'


class Employee(Base):
    __tablename__ = 'employees'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str] = mapped_column(CITEXT(), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(Text, nullable=False)
    purchase_roles: Mapped[list[str]] = mapped_column(ARRAY(Text), nullable=False, default=list, server_default='{}')
    slack_id: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuthEvent(Base):
    __tablename__ = 'auth_events'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    attempted_email: Mapped[str] = mapped_column(CITEXT(), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    failure_reason: Mapped[str | None] = mapped_column(Text)
    employee_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('employees.id'))
    ip: Mapped[str | None] = mapped_column(INET)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AuditLog(Base):
    __tablename__ = 'audit_log'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    actor_employee_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('employees.id'))
    action: Mapped[str] = mapped_column(Text, nullable=False)
    order_number: Mapped[str | None] = mapped_column(Text)
    ip: Mapped[str | None] = mapped_column(INET)
    meta: Mapped[dict] = mapped_column('metadata', JSON, nullable=False, default=dict, server_default='{}')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class WebSession(Base):
    __tablename__ = 'web_sessions'
    __table_args__ = (
        UniqueConstraint('session_token', name='web_sessions_session_token_key'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    employee_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('employees.id'), nullable=False)
    ip: Mapped[str | None] = mapped_column(INET)
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_seen_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class Vendor(Base):
    __tablename__ = 'vendors'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(Text)
    fax: Mapped[str | None] = mapped_column(Text)
    payment_schedule: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class VendorContact(Base):
    __tablename__ = 'vendor_contacts'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    vendor_id: Mapped[int] = mapped_column(BigInteger, ForeignKey('vendors.id', ondelete='CASCADE'), nullable=False)
    contact_name: Mapped[str] = mapped_column(Text, nullable=False)
    email: Mapped[str | None] = mapped_column(Text)
    phone: Mapped[str | None] = mapped_column(Text)
    position: Mapped[str | None] = mapped_column(Text)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default='true')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class PurchaseOrderLine(Base):
    __tablename__ = 'purchase_order_lines'
    __table_args__ = (
        UniqueConstraint('order_number', 'line_number', name='purchase_order_lines_order_line_uniq'),
        CheckConstraint('quantity >= 0', name='purchase_order_lines_quantity_non_negative'),
        CheckConstraint('unit_price >= 0', name='purchase_order_lines_unit_price_non_negative'),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    order_number: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)

    item_name: Mapped[str] = mapped_column(Text, nullable=False)
    specification: Mapped[str | None] = mapped_column(Text)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default='0')
    unit_price: Mapped[Decimal] = mapped_column(Numeric(16, 2), nullable=False, default=Decimal('0'), server_default='0')
    amount: Mapped[Decimal] = mapped_column(Numeric(18, 2), nullable=False, default=Decimal('0'), server_default='0')
    remark: Mapped[str | None] = mapped_column(Text)
    link: Mapped[str | None] = mapped_column(Text)

    currency: Mapped[str] = mapped_column(String(3), nullable=False, default='KRW', server_default='KRW')
    requester_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('employees.id'))
    requester_name: Mapped[str] = mapped_column(Text, nullable=False)
    vendor_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('vendors.id'))
    contact_id: Mapped[int | None] = mapped_column(BigInteger, ForeignKey('vendor_contacts.id'))
    request_type: Mapped[RequestType] = mapped_column(
        SQLEnum(RequestType, name='request_type'),
        nullable=False,
        default=RequestType.RAW_MATERIAL,
        server_default='RAW_MATERIAL',
    )
    request_date: Mapped[date] = mapped_column(Date, nullable=False)
    delivery_request_date: Mapped[date | None] = mapped_column(Date)
    progress_type: Mapped[ProgressType] = mapped_column(
        SQLEnum(ProgressType, name='progress_type'),
        nullable=False,
        default=ProgressType.NORMAL,
        server_default='NORMAL',
    )
    payment_category: Mapped[PaymentCategory] = mapped_column(
        SQLEnum(PaymentCategory, name='payment_category'),
        nullable=False,
        default=PaymentCategory.ORDER,
        server_default='ORDER',
    )
    project_vendor: Mapped[str | None] = mapped_column(Text)
    sales_order_number: Mapped[str | None] = mapped_column(Text)
    project_item: Mapped[str | None] = mapped_column(Text)

    middle_manager_status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus, name='approval_status'),
        nullable=False,
        default=ApprovalStatus.PENDING,
        server_default='PENDING',
    )
    final_manager_status: Mapped[ApprovalStatus] = mapped_column(
        SQLEnum(ApprovalStatus, name='approval_status'),
        nullable=False,
        default=ApprovalStatus.PENDING,
        server_default='PENDING',
    )
    final_manager_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_payment_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    payment_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_received: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_po_downloaded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default='false')

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class OrderNotification(Base):
    __tablename__ = 'order_notifications'

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    order_number: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    kind: Mapped[NotificationKind] = mapped_column(SQLEnum(NotificationKind, name='notification_kind'), nullable=False)
    channel: Mapped[str] = mapped_column(Text, nullable=False)
    message_ts: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
