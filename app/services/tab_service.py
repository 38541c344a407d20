from __future__ import annotations

from datetime import date
from enum import Enum

from app.models import ApprovalStatus, PaymentCategory, ProgressType
from app.services.calendar_utils import is_today
from app.services.status_service import coerce_status


class Tab(str, Enum):
    PENDING = 'pending'
    PURCHASE = 'purchase'
    RECEIPT = 'receipt'
    DONE = 'done'


def _final_approved(line) -> bool:
    return coerce_status(line.final_manager_status) == ApprovalStatus.APPROVED


def _is_advance(line) -> bool:
    return ProgressType(line.progress_type) == ProgressType.ADVANCE


def in_pending(line, today: date) -> bool:
    # Approved orders stay visible through the calendar day of approval.
    if not _final_approved(line):
        return True
    return is_today(line.final_manager_approved_at, today)


def in_purchase(line, today: date) -> bool:
    if PaymentCategory(line.payment_category) != PaymentCategory.PURCHASE_REQUEST:
        return False
    if line.is_payment_completed and not is_today(line.payment_completed_at, today):
        return False
    return _is_advance(line) or _final_approved(line)


def in_receipt(line, today: date) -> bool:
    if not (_final_approved(line) or _is_advance(line)):
        return False
    return not line.is_received or is_today(line.received_at, today)


_PREDICATES = {
    Tab.PENDING: in_pending,
    Tab.PURCHASE: in_purchase,
    Tab.RECEIPT: in_receipt,
    Tab.DONE: lambda _line, _today: True,
}


def in_tab(line, tab: Tab, today: date) -> bool:
    return _PREDICATES[Tab(tab)](line, today)


def classify(line, today: date) -> frozenset[Tab]:
    return frozenset(tab for tab, predicate in _PREDICATES.items() if predicate(line, today))
