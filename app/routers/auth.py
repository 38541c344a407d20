from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.auth import Principal, get_current_principal
from app.config import settings
from app.db import get_db
from app.dependencies import get_client_ip
from app.models import Employee
from app.schemas import LoginIn
from app.security.csrf import verify_csrf
from app.security.passwords import verify_password
from app.security.sessions import create_web_session, principal_from_employee, revoke_web_session
from app.services.audit_service import AccountAction, record_account_event, record_login_attempt

router = APIRouter(tags=['auth'])

INVALID_LOGIN = {'detail': 'Invalid email or password'}


def principal_to_dict(principal: Principal) -> dict:
    return {
        'id': principal.id,
        'name': principal.name,
        'email': principal.email,
        'roles': sorted(role.value for role in principal.roles),
    }


@router.get('/login')
def login_page(request: Request):
    return {'csrf_token': getattr(request.state, 'csrf_token', '')}


@router.post('/login')
def login_submit(
    payload: LoginIn,
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    email = payload.email.strip()
    ip = get_client_ip(request)
    user_agent = request.headers.get('user-agent')

    employee = db.execute(select(Employee).where(Employee.email == email)).scalar_one_or_none()
    failure_reason = None
    if not employee:
        failure_reason = 'UNKNOWN_EMAIL'
    elif not employee.active:
        failure_reason = 'INACTIVE_EMPLOYEE'
    else:
        valid, updated_hash = verify_password(payload.password, employee.password_hash)
        if not valid:
            failure_reason = 'BAD_PASSWORD'
        elif updated_hash:
            employee.password_hash = updated_hash

    if failure_reason:
        record_login_attempt(
            db,
            email=email,
            employee=employee,
            failure_reason=failure_reason,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        return JSONResponse(INVALID_LOGIN, status_code=401)

    token = create_web_session(db, employee.id, ip=ip, user_agent=user_agent)
    record_login_attempt(db, email=email, employee=employee, ip=ip, user_agent=user_agent)
    record_account_event(db, actor_employee_id=employee.id, action=AccountAction.LOGIN, ip=ip, details={'email': email})
    db.commit()

    response = JSONResponse(principal_to_dict(principal_from_employee(employee)))
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    principal = getattr(request.state, 'principal', None)
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        revoke_web_session(db, token)

    record_account_event(
        db,
        actor_employee_id=principal.id if principal else None,
        action=AccountAction.LOGOUT,
        ip=get_client_ip(request),
    )
    db.commit()

    response = JSONResponse({'ok': True})
    response.delete_cookie(settings.session_cookie_name)
    return response


@router.get('/me')
def me(principal: Principal = Depends(get_current_principal)):
    return principal_to_dict(principal)
