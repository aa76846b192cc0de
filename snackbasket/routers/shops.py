from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import RedirectResponse
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, staff_access
from snackbasket.db import get_db
from snackbasket.dependencies import action_failed, form_float, form_str, get_client_ip
from snackbasket.models import ShopCategory
from snackbasket.security.csrf import verify_csrf
from snackbasket.services.audit_service import log_audit
from snackbasket.services.geocoding_service import reverse_geocode
from snackbasket.services.shop_service import (
    create_shop,
    haversine_km,
    list_shops,
    refresh_new_flags,
    shops_within_radius,
)

router = APIRouter(prefix='/shops', tags=['shops'])


@router.get('')
def shops_page(
    request: Request,
    category: str | None = Query(default=None),
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    refresh_new_flags(db)
    db.commit()
    try:
        shops = list_shops(db, category=category)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    return request.app.state.templates.TemplateResponse(
        request,
        'shops.html',
        {
            'principal': principal,
            'shops': shops,
            'category': category or 'all',
            'categories': [c.value for c in ShopCategory],
        },
    )


@router.get('/new')
def new_shop_page(request: Request, principal: Principal = Depends(staff_access)):
    return request.app.state.templates.TemplateResponse(
        request,
        'shop_form.html',
        {'principal': principal, 'categories': [c.value for c in ShopCategory], 'error': None},
    )


@router.post('/new')
async def new_shop_submit(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
    _: None = Depends(verify_csrf),
):
    form = await request.form()
    try:
        shop = create_shop(
            db,
            name=form_str(form, 'name'),
            location=form_str(form, 'location'),
            phone_number=form_str(form, 'phone_number'),
            category=form_str(form, 'category'),
            latitude=form_float(form, 'latitude'),
            longitude=form_float(form, 'longitude'),
            created_by_user_id=principal.id,
        )
    except ValueError as exc:
        db.rollback()
        return request.app.state.templates.TemplateResponse(
            request,
            'shop_form.html',
            {
                'principal': principal,
                'categories': [c.value for c in ShopCategory],
                'error': str(exc),
                'values': dict(form),
            },
            status_code=400,
        )

    log_audit(
        db,
        actor_user_id=principal.id,
        action='SHOP_CREATED',
        ip=get_client_ip(request),
        metadata={'shop_id': shop.id, 'name': shop.name, 'category': shop.category.value},
    )
    db.commit()
    return RedirectResponse('/shops', status_code=303)


@router.get('/nearby')
def nearby_shops_page(
    request: Request,
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    radius_km: float = Query(default=5.0, ge=0),
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    shops = shops_within_radius(db, latitude=latitude, longitude=longitude, radius_km=radius_km)
    rows = sorted(
        (
            {'shop': shop, 'distance_km': haversine_km(latitude, longitude, shop.latitude, shop.longitude)}
            for shop in shops
        ),
        key=lambda row: row['distance_km'],
    )
    return request.app.state.templates.TemplateResponse(
        request,
        'shops_nearby.html',
        {
            'principal': principal,
            'rows': rows,
            'latitude': latitude,
            'longitude': longitude,
            'radius_km': radius_km,
        },
    )


@router.get('/geocode')
def geocode(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    _: Principal = Depends(staff_access),
) -> dict:
    return {'latitude': latitude, 'longitude': longitude, 'address': reverse_geocode(latitude, longitude)}
