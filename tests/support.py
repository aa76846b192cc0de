from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from snackbasket.models import Base, ShopCategory
from snackbasket.services.catalog_service import seed_default_skus
from snackbasket.services.shop_service import create_shop


def make_session_factory() -> sessionmaker:
    engine = create_engine('sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


def seeded_session() -> Session:
    db = make_session_factory()()
    seed_default_skus(db)
    db.commit()
    return db


def add_shop(db: Session, **overrides):
    values = {
        'name': 'Corner Mart',
        'location': 'MG Road',
        'phone_number': '9876543210',
        'category': ShopCategory.RETAILER,
    }
    values.update(overrides)
    return create_shop(db, **values)
