from __future__ import annotations

import json
import logging
from decimal import Decimal, InvalidOperation
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth import PurchaseRole
from app.config import settings
from app.models import Employee, NotificationKind, OrderNotification

logger = logging.getLogger(__name__)

# Who hears about an order at each stage.
RECIPIENT_ROLES: dict[NotificationKind, PurchaseRole] = {
    NotificationKind.NEW_REQUEST: PurchaseRole.MIDDLE_MANAGER,
    NotificationKind.VERIFIED: PurchaseRole.FINAL_APPROVER,
    NotificationKind.FINAL_APPROVED: PurchaseRole.LEAD_BUYER,
}

HEADLINES: dict[NotificationKind, str] = {
    NotificationKind.NEW_REQUEST: 'New purchase request awaiting verification',
    NotificationKind.VERIFIED: 'Purchase request verified, awaiting final approval',
    NotificationKind.FINAL_APPROVED: 'Purchase request approved, ready for purchasing',
}


class NotificationError(RuntimeError):
    pass


def _slack_post(method: str, payload: dict) -> dict:
    if not settings.slack_bot_token:
        raise NotificationError('SLACK_BOT_TOKEN is required')

    req = Request(
        url=f'{settings.slack_api_base_url.rstrip("/")}/{method}',
        data=json.dumps(payload).encode('utf-8'),
        headers={
            'Authorization': f'Bearer {settings.slack_bot_token}',
            'Content-Type': 'application/json; charset=utf-8',
        },
        method='POST',
    )
    try:
        with urlopen(req, timeout=settings.slack_timeout_seconds) as response:
            parsed = json.loads(response.read().decode('utf-8'))
    except HTTPError as exc:
        body = exc.read().decode('utf-8', errors='ignore') if exc.fp else ''
        raise NotificationError(f'Slack API error {exc.code}: {body}') from exc
    except URLError as exc:
        raise NotificationError(f'Slack API network error: {exc.reason}') from exc

    if not parsed.get('ok'):
        raise NotificationError(f"Slack API returned error: {parsed.get('error', 'unknown')}")
    return parsed


def recipients_for_role(db: Session, role: PurchaseRole) -> list[Employee]:
    return list(
        db.execute(
            select(Employee)
            .where(
                Employee.active.is_(True),
                Employee.slack_id.is_not(None),
                Employee.purchase_roles.contains([role.value]),
            )
            .order_by(Employee.name.asc())
        ).scalars()
    )


def _format_amount(value) -> str:
    try:
        number = Decimal(str(value if value is not None else 0))
    except InvalidOperation:
        return str(value)
    if number == number.to_integral_value():
        return f'{number:,.0f}'
    return f'{number:,.2f}'


def build_blocks(kind: NotificationKind, header, *, line_count: int, total_amount) -> list[dict]:
    first_item = header.item_name or '-'
    items = first_item if line_count <= 1 else f'{first_item} and {line_count - 1} more'
    return [
        {'type': 'header', 'text': {'type': 'plain_text', 'text': HEADLINES[kind]}},
        {
            'type': 'section',
            'fields': [
                {'type': 'mrkdwn', 'text': f'*Order*\n{header.order_number}'},
                {'type': 'mrkdwn', 'text': f'*Requester*\n{header.requester_name}'},
                {'type': 'mrkdwn', 'text': f'*Vendor*\n{getattr(header, "vendor_name", None) or "-"}'},
                {'type': 'mrkdwn', 'text': f'*Items*\n{items}'},
                {'type': 'mrkdwn', 'text': f'*Total*\n{_format_amount(total_amount)} {header.currency}'},
            ],
        },
    ]


def notify_order(db: Session, *, kind: NotificationKind, lines: list) -> list[str]:
    """Message every holder of the stage's role; returns warnings instead of raising."""
    if not settings.notifications_enabled or not lines:
        return []

    header = lines[0]
    role = RECIPIENT_ROLES[kind]
    try:
        recipients = recipients_for_role(db, role)
    except Exception as exc:
        logger.warning('Could not resolve %s recipients for %s: %s', role.value, header.order_number, exc)
        return [f'Notification skipped: could not resolve {role.value} recipients']

    if not recipients:
        logger.info('No %s recipients with a Slack id for %s', role.value, header.order_number)
        return []

    total = sum((Decimal(str(line.amount or 0)) for line in lines), Decimal('0'))
    blocks = build_blocks(kind, header, line_count=len(lines), total_amount=total)
    warnings: list[str] = []
    for employee in recipients:
        try:
            response = _slack_post(
                'chat.postMessage',
                {'channel': employee.slack_id, 'text': f'{HEADLINES[kind]}: {header.order_number}', 'blocks': blocks},
            )
        except NotificationError as exc:
            logger.warning('Slack notification to %s for %s failed: %s', employee.name, header.order_number, exc)
            warnings.append(f'Could not notify {employee.name}: {exc}')
            continue
        db.add(
            OrderNotification(
                order_number=header.order_number,
                kind=kind,
                channel=response.get('channel') or employee.slack_id,
                message_ts=response.get('ts'),
            )
        )
    return warnings


def notify_new_request(db: Session, *, lines: list) -> list[str]:
    return notify_order(db, kind=NotificationKind.NEW_REQUEST, lines=lines)


def notify_verified(db: Session, *, lines: list) -> list[str]:
    return notify_order(db, kind=NotificationKind.VERIFIED, lines=lines)


def notify_final_approved(db: Session, *, lines: list) -> list[str]:
    return notify_order(db, kind=NotificationKind.FINAL_APPROVED, lines=lines)
