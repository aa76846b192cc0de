from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from snackbasket.models import Sku

logger = logging.getLogger(__name__)

# (id, name, description, price, box_price, cost_per_unit)
DEFAULT_SKUS = [
    ('SKU001', 'Product A', 'A high-quality product for everyday use', '250', '5750', '200'),
    ('SKU002', 'Product B', 'Premium product with extra features', '350', '8050', '280'),
    ('SKU003', 'Product C', 'Economy version for budget-conscious customers', '150', '3450', '100'),
    ('SKU004', 'Product D', 'Specialized product for specific needs', '450', '10350', '380'),
]


def seed_default_skus(db: Session) -> int:
    existing = db.execute(select(func.count()).select_from(Sku)).scalar_one()
    if existing:
        return 0

    for sku_id, name, description, price, box_price, cost_per_unit in DEFAULT_SKUS:
        db.add(
            Sku(
                id=sku_id,
                name=name,
                description=description,
                price=Decimal(price),
                box_price=Decimal(box_price),
                cost_per_unit=Decimal(cost_per_unit),
                active=True,
            )
        )
    db.flush()
    logger.info('Seeded %d default SKUs', len(DEFAULT_SKUS))
    return len(DEFAULT_SKUS)


def list_skus(db: Session, *, include_inactive: bool = False) -> list[Sku]:
    query = select(Sku).order_by(Sku.id.asc())
    if not include_inactive:
        query = query.where(Sku.active.is_(True))
    return db.execute(query).scalars().all()


def get_skus_by_ids(db: Session, sku_ids: list[str]) -> dict[str, Sku]:
    if not sku_ids:
        return {}
    rows = db.execute(select(Sku).where(Sku.id.in_(set(sku_ids)))).scalars().all()
    return {sku.id: sku for sku in rows}
