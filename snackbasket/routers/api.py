from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, admin_access, staff_access
from snackbasket.db import get_db
from snackbasket.dependencies import action_failed, get_client_ip
from snackbasket.schemas import (
    DeliveryAdvanceIn,
    DeliveryIn,
    DeliveryOut,
    DiscountIn,
    OrderIn,
    OrderOut,
    ReturnOrderIn,
    ReturnOrderOut,
    ShopIn,
    ShopOut,
    SkuOut,
    SurveyIn,
    SurveyOut,
    UserOut,
    delivery_to_schema,
    order_to_schema,
    return_order_to_schema,
    shop_to_schema,
    sku_to_schema,
    survey_to_schema,
    user_to_schema,
)
from snackbasket.services.audit_service import log_audit
from snackbasket.services.catalog_service import list_skus
from snackbasket.services.checkout_service import place_order
from snackbasket.services.delivery_service import (
    advance_delivery,
    create_delivery,
    get_delivery,
    get_delivery_by_order_id,
    list_deliveries,
)
from snackbasket.services.order_service import (
    LineItemInput,
    apply_discount,
    create_return_order,
    get_order,
    get_return_order,
    list_orders,
    list_return_orders,
)
from snackbasket.services.shop_service import create_shop, list_shops, refresh_new_flags, shops_within_radius
from snackbasket.services.survey_service import RATING_FIELDS, create_survey, list_surveys
from snackbasket.services.user_service import get_user, list_users

router = APIRouter(prefix='/api', tags=['api'])


def _line_inputs(items) -> list[LineItemInput]:
    return [LineItemInput(sku_id=item.sku_id, quantity=item.quantity) for item in items]


@router.get('/skus', response_model=list[SkuOut])
def api_list_skus(_: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    return [sku_to_schema(sku) for sku in list_skus(db)]


@router.get('/shops', response_model=list[ShopOut])
def api_list_shops(
    category: str | None = Query(default=None),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        return [shop_to_schema(shop) for shop in list_shops(db, category=category)]
    except ValueError as exc:
        raise action_failed(db, exc) from exc


@router.post('/shops', response_model=ShopOut, status_code=status.HTTP_201_CREATED)
def api_create_shop(
    payload: ShopIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        shop = create_shop(
            db,
            name=payload.name,
            location=payload.location,
            phone_number=payload.phone_number,
            category=payload.category,
            latitude=payload.latitude,
            longitude=payload.longitude,
            created_by_user_id=principal.id,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='SHOP_CREATED',
        ip=get_client_ip(request),
        metadata={'shop_id': shop.id, 'name': shop.name},
    )
    db.commit()
    return shop_to_schema(shop)


@router.get('/shops/nearby', response_model=list[ShopOut])
def api_nearby_shops(
    latitude: float = Query(ge=-90, le=90),
    longitude: float = Query(ge=-180, le=180),
    radius_km: float = Query(ge=0),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    shops = shops_within_radius(db, latitude=latitude, longitude=longitude, radius_km=radius_km)
    return [shop_to_schema(shop) for shop in shops]


@router.post('/shops/refresh-new')
def api_refresh_new_flags(_: Principal = Depends(staff_access), db: Session = Depends(get_db)) -> dict:
    updated = refresh_new_flags(db)
    db.commit()
    return {'updated': updated}


@router.get('/orders', response_model=list[OrderOut])
def api_list_orders(
    shop_id: int | None = Query(default=None, alias='shopId'),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return [order_to_schema(order) for order in list_orders(db, shop_id=shop_id)]


@router.post('/orders', response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def api_create_order(
    payload: OrderIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        order, delivery = place_order(
            db,
            shop_id=payload.shop_id,
            items=_line_inputs(payload.order_items),
            discount_code=payload.discount_code,
            actor_user_id=principal.id,
            actor_email=principal.email,
            ip=get_client_ip(request),
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    return order_to_schema(order, delivery_id=delivery.id if delivery else None)


@router.get('/orders/{order_id}', response_model=OrderOut)
def api_get_order(order_id: int, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    try:
        order = get_order(db, order_id)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    delivery = get_delivery_by_order_id(db, order.id)
    return order_to_schema(order, delivery_id=delivery.id if delivery else None)


@router.post('/orders/{order_id}/discount', response_model=OrderOut)
def api_apply_discount(
    order_id: int,
    payload: DiscountIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        order = apply_discount(db, order_id=order_id, discount_code=payload.discount_code)
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='ORDER_DISCOUNT_APPLIED',
        ip=get_client_ip(request),
        metadata={'order_id': order.id, 'discount_code': order.discount_code},
    )
    db.commit()
    return order_to_schema(order)


@router.get('/return-orders', response_model=list[ReturnOrderOut])
def api_list_return_orders(
    shop_id: int | None = Query(default=None, alias='shopId'),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    return [return_order_to_schema(row) for row in list_return_orders(db, shop_id=shop_id)]


@router.post('/return-orders', response_model=ReturnOrderOut, status_code=status.HTTP_201_CREATED)
def api_create_return_order(
    payload: ReturnOrderIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        return_order = create_return_order(
            db,
            shop_id=payload.shop_id,
            items=_line_inputs(payload.return_items),
            linked_order_id=payload.linked_order_id,
            reason_code=payload.reason_code,
            notes=payload.notes,
            created_by_user_id=principal.id,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='RETURN_ORDER_CREATED',
        ip=get_client_ip(request),
        metadata={'return_order_id': return_order.id, 'shop_id': payload.shop_id},
    )
    db.commit()
    return return_order_to_schema(return_order)


@router.get('/return-orders/{return_order_id}', response_model=ReturnOrderOut)
def api_get_return_order(return_order_id: int, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    try:
        return return_order_to_schema(get_return_order(db, return_order_id))
    except ValueError as exc:
        raise action_failed(db, exc) from exc


@router.get('/deliveries', response_model=list[DeliveryOut])
def api_list_deliveries(
    search: str | None = Query(default=None),
    status_filter: str = Query(default='all', alias='status'),
    _: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        return [delivery_to_schema(delivery) for delivery in list_deliveries(db, search=search, status=status_filter)]
    except ValueError as exc:
        raise action_failed(db, exc) from exc


@router.post('/deliveries', response_model=DeliveryOut, status_code=status.HTTP_201_CREATED)
def api_create_delivery(
    payload: DeliveryIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        delivery = create_delivery(
            db,
            order_id=payload.order_id,
            status=payload.status,
            current_location=payload.current_location,
            estimated_delivery_date=payload.estimated_delivery_date,
            tracking_number=payload.tracking_number,
            delivery_notes=payload.delivery_notes,
            updated_by=principal.email,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='DELIVERY_CREATED',
        ip=get_client_ip(request),
        metadata={'delivery_id': delivery.id, 'order_id': payload.order_id},
    )
    db.commit()
    return delivery_to_schema(delivery)


@router.get('/deliveries/by-order/{order_id}', response_model=DeliveryOut)
def api_delivery_by_order(order_id: int, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    delivery = get_delivery_by_order_id(db, order_id)
    if not delivery:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Delivery not found')
    return delivery_to_schema(delivery)


@router.get('/deliveries/{delivery_id}', response_model=DeliveryOut)
def api_get_delivery(delivery_id: int, _: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    try:
        return delivery_to_schema(get_delivery(db, delivery_id))
    except ValueError as exc:
        raise action_failed(db, exc) from exc


@router.post('/deliveries/{delivery_id}/status', response_model=DeliveryOut)
def api_advance_delivery(
    delivery_id: int,
    payload: DeliveryAdvanceIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        delivery = advance_delivery(
            db,
            delivery_id=delivery_id,
            new_status=payload.status,
            notes=payload.notes,
            location=payload.location,
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
    return delivery_to_schema(delivery)


@router.get('/surveys', response_model=list[SurveyOut])
def api_list_surveys(
    shop_id: int | None = Query(default=None, alias='shopId'),
    _: Principal = Depends(admin_access),
    db: Session = Depends(get_db),
):
    return [survey_to_schema(survey) for survey in list_surveys(db, shop_id=shop_id)]


@router.post('/surveys', response_model=SurveyOut, status_code=status.HTTP_201_CREATED)
def api_create_survey(
    payload: SurveyIn,
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    try:
        survey = create_survey(
            db,
            respondent_name=payload.respondent_name,
            respondent_phone=payload.respondent_phone,
            shop_id=payload.shop_id,
            ratings={field: getattr(payload, field) for field in RATING_FIELDS},
            feedback=payload.feedback,
            concerns=payload.concerns,
            created_by_user_id=principal.id,
        )
    except ValueError as exc:
        raise action_failed(db, exc) from exc
    log_audit(
        db,
        actor_user_id=principal.id,
        action='SURVEY_SUBMITTED',
        ip=get_client_ip(request),
        metadata={'survey_id': survey.id, 'shop_id': survey.shop_id},
    )
    db.commit()
    return survey_to_schema(survey)


@router.get('/users/me', response_model=UserOut)
def api_current_user(principal: Principal = Depends(staff_access), db: Session = Depends(get_db)):
    try:
        return user_to_schema(get_user(db, principal.id))
    except ValueError as exc:
        raise action_failed(db, exc) from exc


@router.get('/users', response_model=list[UserOut])
def api_list_users(_: Principal = Depends(admin_access), db: Session = Depends(get_db)):
    return [user_to_schema(user) for user in list_users(db)]
