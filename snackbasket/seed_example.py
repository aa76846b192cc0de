from snackbasket.db import SessionLocal, create_tables
from snackbasket.models import ShopCategory, UserRole
from snackbasket.services.catalog_service import seed_default_skus
from snackbasket.services.shop_service import create_shop, list_shops
from snackbasket.services.user_service import add_user, get_user_by_email


def seed() -> None:
    create_tables()
    with SessionLocal() as db:
        seed_default_skus(db)

        if not get_user_by_email(db, 'admin@example.com'):
            add_user(
                db,
                email='admin@example.com',
                name='Admin',
                role=UserRole.ADMIN,
                is_active=True,
                password='adminpass',
            )

        if not get_user_by_email(db, 'field@example.com'):
            add_user(
                db,
                email='field@example.com',
                name='Field Employee',
                role=UserRole.EMPLOYEE,
                is_active=True,
                password='fieldpass',
            )

        if not list_shops(db):
            create_shop(
                db,
                name='Corner Mart',
                location='MG Road, Bengaluru',
                phone_number='9876543210',
                category=ShopCategory.RETAILER,
                latitude=12.9756,
                longitude=77.6050,
            )
            create_shop(
                db,
                name='Namma Wholesale',
                location='KR Market, Bengaluru',
                phone_number='9123456780',
                category=ShopCategory.WHOLESALER,
                latitude=12.9621,
                longitude=77.5776,
            )

        db.commit()


if __name__ == '__main__':
    seed()
    print('Seed data inserted/verified.')
