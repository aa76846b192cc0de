from __future__ import annotations

from datetime import datetime, time, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, staff_access
from snackbasket.db import get_db
from snackbasket.dependencies import action_failed, form_int, form_str, get_client_ip
from snackbasket.security.csrf import verify_csrf
from snackbasket.services.audit_service import log_audit
from snackbasket.services.delivery_service import (
    DELIVERY_PHASES,
    STATUS_LABELS,
    advance_delivery,
    create_delivery,
    delivery_progress,
    get_delivery,
    get_next_status,
    list_deliveries,
)
from snackbasket.services.order_service import get_order, list_orders
from snackbasket.services.shop_service import get_shop, shop_names_by_id

router = APIRouter(prefix='/deliveries', tags=['deliveries'])


def _parse_date(raw: str) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.combine(datetime.strptime(raw, '%Y-%m-%d').date(), time.min, tzinfo=timezone.utc)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail='Invalid estimated delivery date') from exc


@router.get('')
def deliveries_page(
    request: Request,
    search: str | None = Query(default=None),
    status: str = Query(default='all'),
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        deliveries = list_deliveries(db, search=search, status=status)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    return request.app.state.templates.TemplateResponse(
        request,
        'deliveries.html',
        {
            'principal': principal,
            'deliveries': deliveries,
            'shop_names': shop_names_by_id(db, {delivery.shop_id for delivery in deliveries}),
            'search': search or '',
            'status': status,
            'phases': DELIVERY_PHASES,
            'labels': STATUS_LABELS,
            'next_status': get_next_status,
        },
    )


@router.get('/new')
def new_delivery_page(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return request.app.state.templates.TemplateResponse(
        request,
        'delivery_form.html',
        {
            'principal': principal,
            'orders': list_orders(db),
            'phases': DELIVERY_PHASES,
            'labels': STATUS_LABELS,
            'error': None,
        },
    )


@router.post('/new')
async def new_delivery_submit(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    order_id = form_int(form, 'order_id')
    if order_id is None:
        raise HTTPException(status_code=400, detail='Order is required')

    try:
        delivery = create_delivery(
            db,
            order_id=order_id,
            status=form_str(form, 'status') or 'Packaging',
            current_location=form_str(form, 'current_location') or None,
            estimated_delivery_date=_parse_date(form_str(form, 'estimated_delivery_date')),
            tracking_number=form_str(form, 'tracking_number') or None,
            delivery_notes=form_str(form, 'delivery_notes') or None,
            updated_by=principal.email,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc

    log_audit(
        db,
        actor_user_id=principal.id,
        action='DELIVERY_CREATED',
        ip=get_client_ip(request),
        metadata={'delivery_id': delivery.id, 'order_id': order_id, 'status': delivery.status.value},
    )
    db.commit()
    return RedirectResponse(f'/deliveries/{delivery.id}', status_code=303)


@router.get('/{delivery_id}')
def delivery_detail_page(
    delivery_id: int,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        delivery = get_delivery(db, delivery_id)
        order = get_order(db, delivery.order_id)
        shop = get_shop(db, delivery.shop_id)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    return request.app.state.templates.TemplateResponse(
        request,
        'delivery_detail.html',
        {
            'principal': principal,
            'delivery': delivery,
            'order': order,
            'shop': shop,
            'progress': delivery_progress(delivery),
            'next_status': get_next_status(delivery.status),
            'labels': STATUS_LABELS,
            'phases': DELIVERY_PHASES,
        },
    )


@router.post('/{delivery_id}/status')
async def delivery_status_submit(
    delivery_id: int,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    new_status = form_str(form, 'status')
    if not new_status:
        raise HTTPException(status_code=400, detail='Status is required')

    try:
        delivery = advance_delivery(
            db,
            delivery_id=delivery_id,
            new_status=new_status,
            notes=form_str(form, 'notes') or None,
            location=form_str(form, 'location') or None,
            updated_by=principal.email,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc

    log_audit(
        db,
        actor_user_id=principal.id,
        action='DELIVERY_STATUS_UPDATED',
        ip=get_client_ip(request),
        metadata={'delivery_id': delivery.id, 'status': delivery.status.value},
    )
    db.commit()
    return RedirectResponse(f'/deliveries/{delivery.id}', status_code=303)
