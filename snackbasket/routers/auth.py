from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import RedirectResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from snackbasket.config import settings
from snackbasket.db import get_db
from snackbasket.dependencies import get_client_ip, get_templates
from snackbasket.security.csrf import verify_csrf
from snackbasket.security.sessions import create_web_session, revoke_web_session
from snackbasket.services.audit_service import log_audit, log_auth_event
from snackbasket.services.user_service import authenticate, sync_user_from_identity

logger = logging.getLogger(__name__)

router = APIRouter(tags=['auth'])

IDENTITY_EMAIL_HEADER = 'x-forwarded-email'
IDENTITY_NAME_HEADER = 'x-forwarded-user'


def _session_redirect(token: str) -> RedirectResponse:
    response = RedirectResponse('/', status_code=303)
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite=settings.session_cookie_samesite,
        max_age=settings.session_ttl_minutes * 60,
    )
    return response


@router.get('/login')
def login_page(request: Request, templates: Jinja2Templates = Depends(get_templates)):
    return templates.TemplateResponse(
        request,
        'login.html',
        {'error': None, 'sso_enabled': settings.trusted_identity_headers},
    )


@router.post('/login')
async def login_submit(
    request: Request,
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    email = str(form.get('email', '')).strip().lower()
    password = str(form.get('password', ''))
    ip = get_client_ip(request)
    user_agent = request.headers.get('user-agent')

    user, failure_reason = authenticate(db, email=email, password=password)
    if failure_reason:
        log_auth_event(
            db,
            attempted_email=email,
            success=False,
            failure_reason=failure_reason,
            user_id=user.id if user else None,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        logger.info('Failed login for %s: %s', email, failure_reason)
        return request.app.state.templates.TemplateResponse(
            request,
            'login.html',
            {'error': 'Invalid email or password', 'sso_enabled': settings.trusted_identity_headers},
            status_code=401,
        )

    token = create_web_session(db, user.id, ip=ip, user_agent=user_agent)
    log_auth_event(db, attempted_email=email, success=True, user_id=user.id, ip=ip, user_agent=user_agent)
    log_audit(db, actor_user_id=user.id, action='AUTH_LOGIN', ip=ip, metadata={'email': email})
    db.commit()
    return _session_redirect(token)


@router.get('/login/sso')
def login_sso(request: Request, db: Session = Depends(get_db)):
    if not settings.trusted_identity_headers:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    email = (request.headers.get(IDENTITY_EMAIL_HEADER) or '').strip().lower()
    name = (request.headers.get(IDENTITY_NAME_HEADER) or '').strip()
    if not email:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail='Identity headers missing')

    ip = get_client_ip(request)
    user_agent = request.headers.get('user-agent')
    try:
        user = sync_user_from_identity(db, email=email, name=name)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    if not user.is_active:
        log_auth_event(
            db,
            attempted_email=email,
            success=False,
            failure_reason='INACTIVE_USER',
            user_id=user.id,
            ip=ip,
            user_agent=user_agent,
        )
        db.commit()
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account is inactive')

    token = create_web_session(db, user.id, ip=ip, user_agent=user_agent)
    log_auth_event(db, attempted_email=email, success=True, user_id=user.id, ip=ip, user_agent=user_agent)
    log_audit(db, actor_user_id=user.id, action='AUTH_LOGIN_SSO', ip=ip, metadata={'email': email})
    db.commit()
    return _session_redirect(token)


@router.post('/logout')
def logout(request: Request, db: Session = Depends(get_db), _: None = Depends(verify_csrf)):
    principal = getattr(request.state, 'principal', None)
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        revoke_web_session(db, token)

    log_audit(
        db,
        actor_user_id=principal.id if principal else None,
        action='AUTH_LOGOUT',
        ip=get_client_ip(request),
        metadata={},
    )
    db.commit()

    response = RedirectResponse('/login', status_code=303)
    response.delete_cookie(settings.session_cookie_name)
    return response
