from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from snackbasket.models import Delivery, Order
from snackbasket.services.audit_service import log_audit
from snackbasket.services.delivery_service import create_delivery_from_order
from snackbasket.services.order_service import LineItemInput, create_order

logger = logging.getLogger(__name__)


def place_order(
    db: Session,
    *,
    shop_id: int,
    items: list[LineItemInput],
    discount_code: str | None,
    actor_user_id: int | None,
    actor_email: str | None,
    ip: str | None,
) -> tuple[Order, Delivery | None]:
    """Create and commit an order, then open its delivery in a second commit.

    The two writes are independent: if the delivery cannot be created the
    order stays committed and ``None`` is returned for the delivery.
    """
    order = create_order(
        db,
        shop_id=shop_id,
        items=items,
        discount_code=discount_code,
        created_by_user_id=actor_user_id,
    )
    log_audit(
        db,
        actor_user_id=actor_user_id,
        action='ORDER_CREATED',
        ip=ip,
        metadata={'order_id': order.id, 'shop_id': shop_id, 'final_amount': str(order.final_amount)},
    )
    db.commit()

    try:
        delivery = create_delivery_from_order(db, order=order, updated_by=actor_email)
        log_audit(
            db,
            actor_user_id=actor_user_id,
            action='DELIVERY_CREATED',
            ip=ip,
            metadata={'delivery_id': delivery.id, 'order_id': order.id, 'tracking_number': delivery.tracking_number},
        )
        db.commit()
    except (SQLAlchemyError, ValueError):
        db.rollback()
        logger.exception('Order %s was saved but its delivery could not be created', order.id)
        return order, None
    return order, delivery
