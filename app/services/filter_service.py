from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum

from app.auth import PurchaseRole, is_admin_tier
from app.models import ApprovalStatus, PaymentCategory, RequestType
from app.services.calendar_utils import default_period, local_date
from app.services.grouping_service import DisplayRow, build_display_rows
from app.services.status_service import StatusPair
from app.services.tab_service import Tab, in_tab

ALL_EMPLOYEES = 'all'

# Roles that see every requester's orders in every tab by default.
APPROVER_ROLES = frozenset({PurchaseRole.MIDDLE_MANAGER, PurchaseRole.FINAL_APPROVER})
# Roles that see everyone in the purchasing views but only themselves elsewhere.
BUYER_ROLES = frozenset({PurchaseRole.PURCHASE_MANAGER, PurchaseRole.LEAD_BUYER})
BUYER_WIDE_TABS = frozenset({Tab.PURCHASE, Tab.DONE})


@dataclass(frozen=True)
class FilterCriteria:
    tab: Tab = Tab.PENDING
    employee: str = ALL_EMPLOYEES
    search: str = ''
    period_start: date | None = None
    period_end: date | None = None

    def period(self, today: date) -> tuple[date, date]:
        start, end = default_period(today)
        return self.period_start or start, self.period_end or end


def _to_decimal(value) -> Decimal | None:
    if value is None or value == '':
        return None
    try:
        number = Decimal(str(value))
    except InvalidOperation:
        return None
    if number == number.to_integral_value():
        return number.quantize(Decimal(1))
    return number.normalize()


def format_plain_number(value) -> str:
    number = _to_decimal(value)
    return '' if number is None else str(number)


def format_grouped_number(value) -> str:
    number = _to_decimal(value)
    if not number:
        return ''
    return format(number, ',')


def search_text(line) -> str:
    parts = [
        line.order_number,
        getattr(line, 'vendor_name', None),
        line.item_name,
        line.specification,
        line.requester_name,
        line.remark,
        getattr(line, 'link', None),
        getattr(line, 'project_vendor', None),
        getattr(line, 'sales_order_number', None),
        getattr(line, 'project_item', None),
        format_plain_number(line.unit_price),
        format_grouped_number(line.unit_price),
        format_plain_number(line.amount),
        format_grouped_number(line.amount),
    ]
    return ' '.join((part or '').lower() for part in parts)


def matches_employee(line, employee: str | None) -> bool:
    if not employee or employee == ALL_EMPLOYEES:
        return True
    return line.requester_name == employee


def matches_search(line, query: str | None) -> bool:
    term = (query or '').strip().lower()
    if not term:
        return True
    return term in search_text(line)


def search_orders(lines, query: str | None) -> list:
    """Keep every line of each order that has at least one matching line."""
    if not (query or '').strip():
        return list(lines)
    lines = list(lines)
    matched = {line.order_number for line in lines if matches_search(line, query)}
    return [line for line in lines if line.order_number in matched]


def in_period(line, start: date, end: date) -> bool:
    requested = local_date(line.request_date)
    if requested is None:
        return False
    return start <= requested <= end


def pending_limited_to_purchase_requests(roles) -> bool:
    return set(roles) == {PurchaseRole.CONSUMABLE_MANAGER}


def _matches_tab(line, tab: Tab, today: date, roles) -> bool:
    if not in_tab(line, tab, today):
        return False
    if tab == Tab.PENDING and pending_limited_to_purchase_requests(roles):
        return PaymentCategory(line.payment_category) == PaymentCategory.PURCHASE_REQUEST
    return True


def filter_lines(lines, criteria: FilterCriteria, *, today: date, viewer_roles=frozenset()) -> list:
    start, end = criteria.period(today)
    tab = Tab(criteria.tab)
    selected = [line for line in lines if matches_employee(line, criteria.employee)]
    selected = search_orders(selected, criteria.search)
    selected = [line for line in selected if _matches_tab(line, tab, today, viewer_roles)]
    return [line for line in selected if in_period(line, start, end)]


def display_rows(lines, criteria: FilterCriteria, *, today: date, viewer_roles=frozenset()) -> list[DisplayRow]:
    return build_display_rows(filter_lines(lines, criteria, today=today, viewer_roles=viewer_roles))


def tab_counts(
    lines,
    *,
    employee: str,
    today: date,
    period_start: date | None = None,
    period_end: date | None = None,
    viewer_roles=frozenset(),
) -> dict[str, int]:
    """Distinct orders per tab after the employee and period filters; search is not applied."""
    start, end = FilterCriteria(period_start=period_start, period_end=period_end).period(today)
    scoped = [line for line in lines if matches_employee(line, employee) and in_period(line, start, end)]
    counts: dict[str, int] = {}
    for tab in Tab:
        orders = {line.order_number for line in scoped if _matches_tab(line, tab, today, viewer_roles)}
        counts[tab.value] = len(orders)
    return counts


def default_employee_filter(roles, tab: Tab, viewer_name: str) -> str:
    tab = Tab(tab)
    if is_admin_tier(roles) or APPROVER_ROLES & set(roles):
        return ALL_EMPLOYEES
    if BUYER_ROLES & set(roles):
        return ALL_EMPLOYEES if tab in BUYER_WIDE_TABS else viewer_name
    if tab == Tab.DONE:
        return ALL_EMPLOYEES
    return viewer_name


class QueueView(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    ALL = 'all'


def approval_queue_types(roles) -> frozenset[RequestType] | None:
    """Request types a viewer reviews; ``None`` means no request-type restriction."""
    allowed = set()
    if PurchaseRole.RAW_MATERIAL_MANAGER in set(roles):
        allowed.add(RequestType.RAW_MATERIAL)
    if PurchaseRole.CONSUMABLE_MANAGER in set(roles):
        allowed.add(RequestType.CONSUMABLE)
    return frozenset(allowed) if allowed else None


def in_queue_view(line, view: QueueView) -> bool:
    pair = StatusPair.of(line)
    view = QueueView(view)
    if view == QueueView.PENDING:
        return ApprovalStatus.PENDING in (pair.middle, pair.final)
    if view == QueueView.APPROVED:
        return pair.middle == ApprovalStatus.APPROVED and pair.final == ApprovalStatus.APPROVED
    return True


def approval_queue(lines, *, roles, view: QueueView = QueueView.PENDING, search: str = '') -> list:
    allowed = approval_queue_types(roles)
    selected = [line for line in lines if allowed is None or RequestType(line.request_type) in allowed]
    selected = [line for line in selected if in_queue_view(line, view)]
    return search_orders(selected, search)


def approval_queue_counts(lines, *, roles) -> dict[str, int]:
    allowed = approval_queue_types(roles)
    scoped = [line for line in lines if allowed is None or RequestType(line.request_type) in allowed]
    return {
        view.value: len({line.order_number for line in scoped if in_queue_view(line, view)})
        for view in QueueView
    }
