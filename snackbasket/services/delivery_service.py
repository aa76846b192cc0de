from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackbasket.config import settings
from snackbasket.models import Delivery, DeliveryStatus, DeliveryStatusUpdate, Order
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.order_service import get_order
from snackbasket.services.shop_service import shop_names_by_id
from snackbasket.services.time_utils import now_utc

logger = logging.getLogger(__name__)

DELIVERY_PHASES: list[DeliveryStatus] = [
    DeliveryStatus.PACKAGING,
    DeliveryStatus.TRANSIT,
    DeliveryStatus.SHIP_TO_OUTLET,
    DeliveryStatus.OUT_FOR_DELIVERY,
    DeliveryStatus.DELIVERED,
]

STATUS_LABELS = {
    DeliveryStatus.PACKAGING: 'Packaging',
    DeliveryStatus.TRANSIT: 'In Transit',
    DeliveryStatus.SHIP_TO_OUTLET: 'Ship to Outlet',
    DeliveryStatus.OUT_FOR_DELIVERY: 'Out for Delivery',
    DeliveryStatus.DELIVERED: 'Delivered',
}

DEFAULT_ORIGIN = 'Warehouse'
ORDER_RECEIVED_NOTE = 'Order received and processing started'


def parse_status(value: str | DeliveryStatus | None) -> DeliveryStatus | None:
    if isinstance(value, DeliveryStatus):
        return value
    try:
        return DeliveryStatus((value or '').strip())
    except ValueError:
        return None


def require_status(value: str | DeliveryStatus) -> DeliveryStatus:
    status = parse_status(value)
    if status is None:
        raise ValidationFailure(f'Unknown delivery status: {value}')
    return status


def get_next_status(current: str | DeliveryStatus | None) -> DeliveryStatus | None:
    status = parse_status(current)
    if status is None or status == DeliveryStatus.DELIVERED:
        return None
    return DELIVERY_PHASES[DELIVERY_PHASES.index(status) + 1]


def phase_index(status: DeliveryStatus) -> int:
    return DELIVERY_PHASES.index(status)


def generate_tracking_number() -> str:
    return f'TR-{100000 + secrets.randbelow(900000)}'


def _append_history(
    delivery: Delivery,
    *,
    status: DeliveryStatus,
    timestamp: datetime,
    notes: str | None,
    location: str | None,
    updated_by: str | None,
) -> DeliveryStatusUpdate:
    entry = DeliveryStatusUpdate(
        status=status,
        timestamp=timestamp,
        notes=notes,
        location=location,
        updated_by=updated_by,
    )
    delivery.status_history.append(entry)
    return entry


def get_delivery(db: Session, delivery_id: int) -> Delivery:
    delivery = db.execute(select(Delivery).where(Delivery.id == delivery_id)).scalar_one_or_none()
    if not delivery:
        raise NotFoundError('Delivery not found')
    return delivery


def get_delivery_by_order_id(db: Session, order_id: int) -> Delivery | None:
    return db.execute(select(Delivery).where(Delivery.order_id == order_id)).scalar_one_or_none()


def create_delivery_from_order(db: Session, *, order: Order, updated_by: str | None = None) -> Delivery:
    existing = get_delivery_by_order_id(db, order.id)
    if existing:
        return existing

    now = now_utc()
    delivery = Delivery(
        order_id=order.id,
        shop_id=order.shop_id,
        status=DeliveryStatus.PACKAGING,
        current_location=DEFAULT_ORIGIN,
        estimated_delivery_date=now + timedelta(days=settings.delivery_estimate_days),
        tracking_number=generate_tracking_number(),
        created_at=now,
        updated_at=now,
    )
    _append_history(
        delivery,
        status=DeliveryStatus.PACKAGING,
        timestamp=now,
        notes=ORDER_RECEIVED_NOTE,
        location=DEFAULT_ORIGIN,
        updated_by=updated_by,
    )
    db.add(delivery)
    db.flush()
    logger.info('Created delivery %s (%s) for order %s', delivery.id, delivery.tracking_number, order.id)
    return delivery


def create_delivery(
    db: Session,
    *,
    order_id: int,
    status: str | DeliveryStatus = DeliveryStatus.PACKAGING,
    current_location: str | None = None,
    estimated_delivery_date: datetime | None = None,
    tracking_number: str | None = None,
    delivery_notes: str | None = None,
    updated_by: str | None = None,
) -> Delivery:
    order = get_order(db, order_id)
    if get_delivery_by_order_id(db, order.id):
        raise ValidationFailure('A delivery already exists for this order')

    initial_status = require_status(status)
    now = now_utc()
    location = current_location.strip() if current_location and current_location.strip() else None
    notes = delivery_notes.strip() if delivery_notes and delivery_notes.strip() else None

    delivery = Delivery(
        order_id=order.id,
        shop_id=order.shop_id,
        status=initial_status,
        current_location=location,
        estimated_delivery_date=estimated_delivery_date,
        actual_delivery_date=now if initial_status == DeliveryStatus.DELIVERED else None,
        tracking_number=(tracking_number or '').strip() or generate_tracking_number(),
        delivery_notes=notes,
        created_at=now,
        updated_at=now,
    )
    _append_history(
        delivery,
        status=initial_status,
        timestamp=now,
        notes=notes,
        location=location,
        updated_by=updated_by,
    )
    db.add(delivery)
    db.flush()
    logger.info('Created delivery %s for order %s in %s', delivery.id, order.id, initial_status.value)
    return delivery


def _check_transition(current: DeliveryStatus, new_status: DeliveryStatus) -> None:
    if not settings.delivery_forward_only:
        return
    if current == DeliveryStatus.DELIVERED:
        raise ValidationFailure('Delivery is already delivered')
    if phase_index(new_status) < phase_index(current):
        raise ValidationFailure(
            f'Cannot move delivery back from {STATUS_LABELS[current]} to {STATUS_LABELS[new_status]}'
        )


def advance_delivery(
    db: Session,
    *,
    delivery_id: int,
    new_status: str | DeliveryStatus,
    notes: str | None = None,
    location: str | None = None,
    updated_by: str | None = None,
) -> Delivery:
    delivery = get_delivery(db, delivery_id)
    target = require_status(new_status)
    _check_transition(delivery.status, target)

    now = now_utc()
    clean_location = location.strip() if location and location.strip() else None
    clean_notes = notes.strip() if notes and notes.strip() else None
    if clean_location:
        delivery.current_location = clean_location

    _append_history(
        delivery,
        status=target,
        timestamp=now,
        notes=clean_notes,
        location=clean_location or delivery.current_location,
        updated_by=updated_by,
    )
    delivery.status = target
    delivery.actual_delivery_date = now if target == DeliveryStatus.DELIVERED else None
    delivery.updated_at = now
    db.flush()
    logger.info('Delivery %s moved to %s', delivery.id, target.value)
    return delivery


def matches_search(delivery: Delivery, *, search: str, shop_name: str) -> bool:
    term = search.strip()
    if not term:
        return True
    return (
        term.lower() in shop_name.lower()
        or term in str(delivery.order_id)
        or (delivery.tracking_number is not None and term in delivery.tracking_number)
    )


def list_deliveries(db: Session, *, search: str | None = None, status: str | None = 'all') -> list[Delivery]:
    query = select(Delivery).order_by(Delivery.updated_at.desc(), Delivery.id.desc())
    if status and status != 'all':
        query = query.where(Delivery.status == require_status(status))
    deliveries = db.execute(query).scalars().all()
    if not search or not search.strip():
        return deliveries

    names = shop_names_by_id(db, {delivery.shop_id for delivery in deliveries})
    return [
        delivery
        for delivery in deliveries
        if matches_search(delivery, search=search, shop_name=names.get(delivery.shop_id, 'Unknown Shop'))
    ]


def delivery_progress(delivery: Delivery) -> list[dict]:
    current = phase_index(delivery.status)
    return [
        {
            'status': phase,
            'label': STATUS_LABELS[phase],
            'completed': idx < current or delivery.status == DeliveryStatus.DELIVERED,
            'current': idx == current,
        }
        for idx, phase in enumerate(DELIVERY_PHASES)
    ]
