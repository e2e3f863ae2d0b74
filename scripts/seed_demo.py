#!/usr/bin/env python3
"""
Seed script to create a demo restaurant with a referrer promo and couriers
"""

import asyncio
import uuid
from datetime import datetime
from decimal import Decimal

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

WEEKDAY_HOURS = {"open": "09:00", "close": "22:00"}


async def seed_demo_data():
    """Seed demo data for development"""
    from sqlalchemy import select

    from app.database import SessionLocal, engine, Base
    from app.models.tenant import Tenant, RestaurantSettings, OperatingState, StaffContact
    from app.models.promo import Referrer, PromoCode
    from app.models.courier import Courier
    from app.models.user import User, UserRole

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with SessionLocal() as db:
        # Check if demo tenant already exists
        result = await db.execute(
            select(Tenant).where(Tenant.name == "Mama Nkechi's Kitchen")
        )
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo tenant...")

        tenant = Tenant(
            id=uuid.uuid4(),
            name="Mama Nkechi's Kitchen",
            timezone="Africa/Lagos",
        )
        db.add(tenant)
        await db.flush()

        print(f"Created tenant: {tenant.name} (ID: {tenant.id})")

        db.add(
            RestaurantSettings(
                tenant_id=tenant.id,
                address="12 Zik Avenue",
                city="Awka",
                phone="+2348031234567",
                hours_json={
                    "monday": WEEKDAY_HOURS,
                    "tuesday": WEEKDAY_HOURS,
                    "wednesday": WEEKDAY_HOURS,
                    "thursday": WEEKDAY_HOURS,
                    "friday": {"open": "09:00", "close": "23:00"},
                    "saturday": {"open": "10:00", "close": "23:00"},
                    "sunday": {"open": "12:00", "close": "20:00", "closed": False},
                },
                prep_time_minutes=30,
            )
        )

        db.add(
            OperatingState(
                tenant_id=tenant.id,
                is_open=True,
                auto_close_enabled=True,
                max_active_orders=10,
                version=0,
            )
        )

        db.add(
            StaffContact(
                tenant_id=tenant.id,
                name="Kitchen Manager",
                phone="+2348039876543",
                role="manager",
            )
        )

        # Referrer and the promo code that binds customers to them
        referrer = Referrer(
            tenant_id=tenant.id,
            name="Ada Food Reviews",
            phone="+2348051112222",
            commission_type="percentage",
            commission_value=Decimal("10"),
        )
        db.add(referrer)
        await db.flush()

        db.add(
            PromoCode(
                tenant_id=tenant.id,
                code="WELCOME10",
                discount_type="percentage",
                discount_value=Decimal("10"),
                max_discount_amount=Decimal("2000"),
                min_order_value=Decimal("2000"),
                referrer_id=referrer.id,
            )
        )
        db.add(
            PromoCode(
                tenant_id=tenant.id,
                code="FLAT500",
                discount_type="fixed_amount",
                discount_value=Decimal("500"),
            )
        )

        couriers = [
            ("Chidi", "+2348060000001", 6.2150, 7.0720, Decimal("0")),
            ("Emeka", "+2348060000002", 6.2300, 7.0900, Decimal("4500")),
            ("Ngozi", "+2348060000003", None, None, Decimal("0")),
        ]
        for name, phone, latitude, longitude, cod_balance in couriers:
            db.add(
                Courier(
                    tenant_id=tenant.id,
                    name=name,
                    phone=phone,
                    status="available",
                    vehicle_id=f"BIKE-{name.upper()}",
                    current_latitude=latitude,
                    current_longitude=longitude,
                    location_updated_at=datetime.utcnow() if latitude is not None else None,
                    cod_balance=cod_balance,
                )
            )

        # Create users
        db.add(
            User(
                email="admin@example.com",
                hashed_password=pwd_context.hash("admin123"),
                full_name="Super Admin",
                role=UserRole.SUPER_ADMIN,
            )
        )
        db.add(
            User(
                tenant_id=tenant.id,
                email="kitchen@example.com",
                hashed_password=pwd_context.hash("kitchen123"),
                full_name="Kitchen Manager",
                role=UserRole.RESTAURANT_ADMIN,
            )
        )

        await db.commit()

        print(f"""
Demo data created successfully!

Tenant: Mama Nkechi's Kitchen
  ID: {tenant.id}

Users:
  Super Admin:
    Email: admin@example.com
    Password: admin123

  Restaurant Admin:
    Email: kitchen@example.com
    Password: kitchen123

Promo codes: WELCOME10 (referrer: Ada Food Reviews), FLAT500
Couriers: {len(couriers)} available
""")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
