from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, staff_access
from snackbasket.db import get_db
from snackbasket.dependencies import action_failed, form_int, form_str, get_client_ip
from snackbasket.models import ReturnReason
from snackbasket.security.csrf import verify_csrf
from snackbasket.services.audit_service import log_audit
from snackbasket.services.catalog_service import list_skus
from snackbasket.services.checkout_service import place_order
from snackbasket.services.delivery_service import get_delivery_by_order_id
from snackbasket.services.order_service import (
    LineItemInput,
    apply_discount,
    create_return_order,
    get_order,
    list_orders,
    list_return_orders,
)
from snackbasket.services.shop_service import get_shop, list_shops, shop_names_by_id

router = APIRouter(tags=['orders'])


def _parse_line_items(form) -> list[LineItemInput]:
    items: list[LineItemInput] = []
    for key, value in form.items():
        if not key.startswith('qty__'):
            continue
        sku_id = key.split('__', 1)[1]
        raw = str(value).strip()
        if raw == '':
            continue
        try:
            quantity = int(raw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f'Invalid quantity for {sku_id}') from exc
        if quantity < 0:
            raise HTTPException(status_code=400, detail=f'Quantity cannot be negative for {sku_id}')
        if quantity:
            items.append(LineItemInput(sku_id=sku_id, quantity=quantity))
    return items


def _form_context(db: Session, principal: Principal, **extra) -> dict:
    return {
        'principal': principal,
        'shops': list_shops(db),
        'skus': list_skus(db),
        'error': None,
        **extra,
    }


@router.get('/orders')
def orders_page(
    request: Request,
    shop_id: int | None = Query(default=None),
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    orders = list_orders(db, shop_id=shop_id)
    return request.app.state.templates.TemplateResponse(
        request,
        'orders.html',
        {
            'principal': principal,
            'orders': orders,
            'shop_names': shop_names_by_id(db, {order.shop_id for order in orders}),
            'shop_id': shop_id,
        },
    )


@router.get('/orders/new')
def new_order_page(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return request.app.state.templates.TemplateResponse(request, 'order_form.html', _form_context(db, principal))


@router.post('/orders/new')
async def new_order_submit(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    shop_id = form_int(form, 'shop_id')
    if shop_id is None:
        raise HTTPException(status_code=400, detail='Shop is required')

    try:
        order, _delivery = place_order(
            db,
            shop_id=shop_id,
            items=_parse_line_items(form),
            discount_code=form_str(form, 'discount_code') or None,
            actor_user_id=principal.id,
            actor_email=principal.email,
            ip=get_client_ip(request),
        )
    except ValueError as exc:
        db.rollback()
        return request.app.state.templates.TemplateResponse(
            request,
            'order_form.html',
            _form_context(db, principal, error=str(exc)),
            status_code=400,
        )
    return RedirectResponse(f'/orders/{order.id}', status_code=303)


@router.get('/orders/{order_id}')
def order_detail_page(
    order_id: int,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        order = get_order(db, order_id)
        shop = get_shop(db, order.shop_id)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    return request.app.state.templates.TemplateResponse(
        request,
        'order_detail.html',
        {
            'principal': principal,
            'order': order,
            'shop': shop,
            'delivery': get_delivery_by_order_id(db, order.id),
        },
    )


@router.post('/orders/{order_id}/discount')
async def order_discount_submit(
    order_id: int,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        order = apply_discount(db, order_id=order_id, discount_code=form_str(form, 'discount_code'))
    except ValueError as exc:
        raise action_failed(db, exc) from exc

    log_audit(
        db,
        actor_user_id=principal.id,
        action='ORDER_DISCOUNT_APPLIED',
        ip=get_client_ip(request),
        metadata={'order_id': order.id, 'discount_code': order.discount_code, 'final_amount': str(order.final_amount)},
    )
    db.commit()
    return RedirectResponse(f'/orders/{order.id}', status_code=303)


@router.get('/return-orders')
def return_orders_page(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return_orders = list_return_orders(db)
    return request.app.state.templates.TemplateResponse(
        request,
        'return_orders.html',
        {
            'principal': principal,
            'return_orders': return_orders,
            'shop_names': shop_names_by_id(db, {row.shop_id for row in return_orders}),
        },
    )


@router.get('/return-orders/new')
def new_return_order_page(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return request.app.state.templates.TemplateResponse(
        request,
        'return_order_form.html',
        _form_context(db, principal, reasons=[reason.value for reason in ReturnReason]),
    )


@router.post('/return-orders/new')
async def new_return_order_submit(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    shop_id = form_int(form, 'shop_id')
    if shop_id is None:
        raise HTTPException(status_code=400, detail='Shop is required')

    try:
        return_order = create_return_order(
            db,
            shop_id=shop_id,
            items=_parse_line_items(form),
            linked_order_id=form_int(form, 'linked_order_id'),
            reason_code=form_str(form, 'reason_code') or None,
            notes=form_str(form, 'notes') or None,
            created_by_user_id=principal.id,
        )
    except ValueError as exc:
        db.rollback()
        return request.app.state.templates.TemplateResponse(
            request,
            'return_order_form.html',
            _form_context(db, principal, reasons=[reason.value for reason in ReturnReason], error=str(exc)),
            status_code=400,
        )

    log_audit(
        db,
        actor_user_id=principal.id,
        action='RETURN_ORDER_CREATED',
        ip=get_client_ip(request),
        metadata={'return_order_id': return_order.id, 'shop_id': shop_id, 'total_amount': str(return_order.total_amount)},
    )
    db.commit()
    return RedirectResponse('/return-orders', status_code=303)
