from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from snackbasket.auth import Principal, is_admin_role, staff_access
from snackbasket.db import get_db
from snackbasket.models import Delivery, DeliveryStatus, Order, Shop

router = APIRouter(tags=['dashboard'])

CARDS = [
    {'href': '/shops/new', 'label': 'Register Shop', 'requires_admin': False},
    {'href': '/shops', 'label': 'Shops', 'requires_admin': False},
    {'href': '/orders/new', 'label': 'Place Order', 'requires_admin': False},
    {'href': '/orders', 'label': 'Order Summary', 'requires_admin': False},
    {'href': '/return-orders/new', 'label': 'Return Order', 'requires_admin': False},
    {'href': '/deliveries', 'label': 'Delivery Tracking', 'requires_admin': False},
    {'href': '/surveys/new', 'label': 'Customer Survey', 'requires_admin': False},
    {'href': '/surveys', 'label': 'Survey Results', 'requires_admin': True},
    {'href': '/users', 'label': 'Users', 'requires_admin': True},
]


def visible_cards(principal: Principal) -> list[dict]:
    return [card for card in CARDS if is_admin_role(principal.role) or not card['requires_admin']]


@router.get('/home')
def home(
    request: Request,
    principal: Principal = Depends(staff_access),
    db: Session = Depends(get_db),
):
    stats = {
        'shops': db.execute(select(func.count()).select_from(Shop)).scalar_one(),
        'orders': db.execute(select(func.count()).select_from(Order)).scalar_one(),
        'open_deliveries': db.execute(
            select(func.count()).select_from(Delivery).where(Delivery.status != DeliveryStatus.DELIVERED)
        ).scalar_one(),
    }
    return request.app.state.templates.TemplateResponse(
        request,
        'home.html',
        {
            'principal': principal,
            'cards': visible_cards(principal),
            'stats': stats,
        },
    )
