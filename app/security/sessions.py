from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select

from app.auth import Principal, parse_roles
from app.config import settings
from app.db import SessionLocal
from app.models import Employee, WebSession


AUTH_EXEMPT_PATHS = {'/login', '/robots.txt', '/health'}


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def _session_expiry() -> datetime:
    return _now() + timedelta(minutes=settings.session_ttl_minutes)


def create_web_session(db, employee_id: int, ip: str | None, user_agent: str | None) -> str:
    token = secrets.token_urlsafe(48)
    web_session = WebSession(
        session_token=token,
        employee_id=employee_id,
        ip=ip,
        user_agent=user_agent,
        expires_at=_session_expiry(),
    )
    db.add(web_session)
    db.flush()
    return token


def revoke_web_session(db, token: str) -> None:
    session = db.execute(select(WebSession).where(WebSession.session_token == token)).scalar_one_or_none()
    if not session or session.revoked_at is not None:
        return
    session.revoked_at = _now()


def principal_from_employee(employee: Employee) -> Principal:
    return Principal(
        id=employee.id,
        name=employee.name or employee.email.split('@')[0],
        email=employee.email,
        roles=parse_roles(employee.purchase_roles),
        active=employee.active,
    )


def load_principal_from_token(db, token: str | None) -> Principal | None:
    if not token:
        return None

    row = db.execute(
        select(WebSession, Employee)
        .join(Employee, Employee.id == WebSession.employee_id)
        .where(WebSession.session_token == token)
    ).one_or_none()
    if not row:
        return None

    web_session, employee = row
    now = _now()
    if web_session.revoked_at is not None or web_session.expires_at <= now:
        return None
    if not employee.active:
        # Deactivated employees lose their open sessions on the next request.
        web_session.revoked_at = now
        return None

    web_session.last_seen_at = now
    web_session.expires_at = _session_expiry()
    return principal_from_employee(employee)


def install_auth_session_middleware(app: FastAPI) -> None:
    @app.middleware('http')
    async def auth_session_middleware(request: Request, call_next):
        token = request.cookies.get(settings.session_cookie_name)
        with SessionLocal() as db:
            principal = load_principal_from_token(db, token)
            request.state.principal = principal
            db.commit()

        if request.url.path not in AUTH_EXEMPT_PATHS and request.state.principal is None:
            return JSONResponse({'detail': 'Not authenticated'}, status_code=401)

        response = await call_next(request)
        return response
