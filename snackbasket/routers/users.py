from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, admin_access
from snackbasket.db import get_db
from snackbasket.dependencies import action_failed, form_str, get_client_ip
from snackbasket.models import UserRole
from snackbasket.security.csrf import verify_csrf
from snackbasket.services.audit_service import log_audit
from snackbasket.services.user_service import (
    add_user,
    delete_user,
    list_users,
    set_user_password,
    update_user,
)

router = APIRouter(prefix='/users', tags=['users'])


def _truthy(value: str) -> bool:
    return value.lower() in {'1', 'true', 'yes', 'on'}


@router.get('')
def users_page(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    return request.app.state.templates.TemplateResponse(
        request,
        'users.html',
        {
            'principal': principal,
            'users': list_users(db),
            'roles': [role.value for role in UserRole],
        },
    )


@router.post('/create')
async def create_user(
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        created = add_user(
            db,
            email=form_str(form, 'email'),
            name=form_str(form, 'name'),
            role=form_str(form, 'role') or UserRole.EMPLOYEE,
            is_active=True,
            password=str(form.get('password', '')) or None,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='USER_CREATED',
        ip=get_client_ip(request),
        metadata={'user_id': created.id, 'email': created.email, 'role': created.role.value},
    )
    db.commit()
    return RedirectResponse('/users', status_code=303)


@router.post('/{target_user_id}/update')
async def update_user_submit(
    target_user_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        updated = update_user(
            db,
            user_id=target_user_id,
            name=form_str(form, 'name') or None,
            role=form_str(form, 'role') or None,
            is_active=_truthy(form_str(form, 'is_active')),
            actor_user_id=principal.id,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='USER_UPDATED',
        ip=get_client_ip(request),
        metadata={'user_id': updated.id, 'role': updated.role.value, 'is_active': updated.is_active},
    )
    db.commit()
    return RedirectResponse('/users', status_code=303)


@router.post('/{target_user_id}/password')
async def set_user_password_submit(
    target_user_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        updated = set_user_password(db, user_id=target_user_id, new_password=str(form.get('new_password', '')))
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='USER_PASSWORD_RESET',
        ip=get_client_ip(request),
        metadata={'user_id': updated.id},
    )
    db.commit()
    return RedirectResponse('/users', status_code=303)


@router.post('/{target_user_id}/delete')
async def delete_user_submit(
    target_user_id: int,
    request: Request,
    principal: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    try:
        delete_user(db, user_id=target_user_id, actor_user_id=principal.id)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='USER_DELETED',
        ip=get_client_ip(request),
        metadata={'user_id': target_user_id},
    )
    db.commit()
    return RedirectResponse('/users', status_code=303)
