from __future__ import annotations

import logging
import math
import re
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from snackbasket.config import settings
from snackbasket.models import Shop, ShopCategory
from snackbasket.services.errors import NotFoundError, ValidationFailure
from snackbasket.services.time_utils import as_utc, now_utc

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
PHONE_RE = re.compile(r'^[0-9\-+\s()]*$')
CATEGORY_ALIASES = {'wholeseller': ShopCategory.WHOLESALER}


def parse_category(value: str | ShopCategory) -> ShopCategory:
    if isinstance(value, ShopCategory):
        return value
    raw = (value or '').strip().lower()
    if raw in CATEGORY_ALIASES:
        return CATEGORY_ALIASES[raw]
    try:
        return ShopCategory(raw)
    except ValueError as exc:
        raise ValidationFailure('Category must be retailer or wholesaler') from exc


def _validate_coordinates(latitude: float | None, longitude: float | None) -> None:
    if latitude is not None and not -90 <= latitude <= 90:
        raise ValidationFailure('Latitude must be between -90 and 90')
    if longitude is not None and not -180 <= longitude <= 180:
        raise ValidationFailure('Longitude must be between -180 and 180')


def create_shop(
    db: Session,
    *,
    name: str,
    location: str,
    phone_number: str,
    category: str | ShopCategory,
    latitude: float | None = None,
    longitude: float | None = None,
    created_by_user_id: int | None = None,
) -> Shop:
    if not (name or '').strip():
        raise ValidationFailure('Shop name is required')
    if not (location or '').strip():
        raise ValidationFailure('Location is required')
    if not (phone_number or '').strip():
        raise ValidationFailure('Phone number is required')
    if not PHONE_RE.match(phone_number.strip()):
        raise ValidationFailure('Invalid phone number format')
    _validate_coordinates(latitude, longitude)

    shop = Shop(
        name=name.strip(),
        location=location.strip(),
        phone_number=phone_number.strip(),
        category=parse_category(category),
        is_new=True,
        latitude=latitude,
        longitude=longitude,
        created_by_user_id=created_by_user_id,
        created_at=now_utc(),
    )
    db.add(shop)
    db.flush()
    logger.info('Created shop %s (%s)', shop.id, shop.name)
    return shop


def get_shop(db: Session, shop_id: int) -> Shop:
    shop = db.execute(select(Shop).where(Shop.id == shop_id)).scalar_one_or_none()
    if not shop:
        raise NotFoundError('Shop not found')
    return shop


def list_shops(db: Session, *, category: str | None = None) -> list[Shop]:
    query = select(Shop).order_by(Shop.created_at.desc(), Shop.id.desc())
    if category and category != 'all':
        query = query.where(Shop.category == parse_category(category))
    return db.execute(query).scalars().all()


def shop_names_by_id(db: Session, shop_ids: set[int]) -> dict[int, str]:
    if not shop_ids:
        return {}
    rows = db.execute(select(Shop.id, Shop.name).where(Shop.id.in_(shop_ids))).all()
    return {row.id: row.name for row in rows}


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def filter_within_radius(shops: list[Shop], *, latitude: float, longitude: float, radius_km: float) -> list[Shop]:
    return [
        shop
        for shop in shops
        if shop.latitude is not None
        and shop.longitude is not None
        and haversine_km(latitude, longitude, shop.latitude, shop.longitude) <= radius_km
    ]


def shops_within_radius(db: Session, *, latitude: float, longitude: float, radius_km: float) -> list[Shop]:
    if radius_km < 0:
        raise ValidationFailure('Radius cannot be negative')
    candidates = db.execute(
        select(Shop).where(Shop.latitude.is_not(None), Shop.longitude.is_not(None)).order_by(Shop.id.asc())
    ).scalars().all()
    return filter_within_radius(candidates, latitude=latitude, longitude=longitude, radius_km=radius_km)


def is_shop_new(shop: Shop, *, now: datetime | None = None) -> bool:
    reference = now or now_utc()
    threshold = reference - timedelta(days=settings.new_shop_days)
    return as_utc(shop.created_at) >= threshold


def refresh_new_flags(db: Session, *, now: datetime | None = None) -> int:
    reference = now or now_utc()
    updated = 0
    for shop in db.execute(select(Shop).where(Shop.is_new.is_(True))).scalars().all():
        if not is_shop_new(shop, now=reference):
            shop.is_new = False
            updated += 1
    if updated:
        db.flush()
        logger.info('Cleared new flag on %d shops', updated)
    return updated
