"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 6 sample users (one admin)
  - 5 sample bookings (mix of Pending, Approved, Completed, Cancelled)
    priced with the same strategies the API uses
"""

import asyncio
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import text

from navigator.domain.enums import (
    BookingStatus,
    PricingMethod,
    Route,
    ServiceType,
    VehicleClass,
)
from navigator.domain.pricing import (
    FlatRoutePricing,
    WeddingShuttlePricing,
    calculate_deposit,
)
from navigator.infrastructure.database import async_session_factory, engine
from navigator.infrastructure.models import BookingModel, UserModel

USERS = [
    {"name": "Nature Navigator Admin", "email": "admin@example.com", "is_admin": True},
    {"name": "Olivia Tremblay", "email": "olivia@example.com"},
    {"name": "Liam Gagnon", "email": "liam@example.com"},
    {"name": "Emma Roy", "email": "emma@example.com"},
    {"name": "Noah Cote", "email": "noah@example.com"},
    {"name": "Ava Bouchard", "email": "ava@example.com"},
]


def _transfer(user_id, route, vehicle, pickup, drop, when, status, **extra):
    total = FlatRoutePricing().quote(route, vehicle)
    return BookingModel(
        user_id=user_id,
        vehicle=vehicle,
        service_type=ServiceType.AIRPORT_TRANSFER,
        pickup=pickup,
        drop=drop,
        scheduled_at=when,
        status=status,
        pricing_method=PricingMethod.ROUTE_BASED,
        total_price=total,
        deposit_amount=calculate_deposit(total, ServiceType.AIRPORT_TRANSFER),
        **extra,
    )


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users ─────────────────────────────────────────────────────
        user_models = []
        for u in USERS:
            m = UserModel(name=u["name"], email=u["email"], is_admin=u.get("is_admin", False))
            session.add(m)
            user_models.append(m)
        await session.flush()
        print(f"  Created {len(user_models)} users")

        # ── Bookings ──────────────────────────────────────────────────
        now = datetime.now(timezone.utc).replace(minute=0, second=0, microsecond=0)
        wedding = WeddingShuttlePricing().calculate(VehicleClass.TRANSIT_VAN)

        bookings = [
            _transfer(
                user_models[1].id,
                Route.YYC_TO_CANMORE,
                VehicleClass.LUXURY_SUV,
                "Calgary International Airport (YYC)",
                "Solara Resort, Canmore",
                now + timedelta(days=3),
                BookingStatus.PENDING,
            ),
            _transfer(
                user_models[2].id,
                Route.BANFF_TO_YYC,
                VehicleClass.TRANSIT_VAN,
                "Fairmont Banff Springs",
                "YYC Airport",
                now + timedelta(days=5),
                BookingStatus.APPROVED,
                deposit_paid=True,
            ),
            _transfer(
                user_models[3].id,
                Route.YYC_TO_BANFF,
                VehicleClass.LUXURY_SUV,
                "YYC",
                "Banff Park Lodge",
                now - timedelta(days=20),
                BookingStatus.COMPLETED,
                deposit_paid=True,
                final_paid=True,
                completed_at=now - timedelta(days=20),
            ),
            _transfer(
                user_models[4].id,
                Route.CANMORE_TO_YYC,
                VehicleClass.LUXURY_SUV,
                "Canmore",
                "Calgary Airport",
                now - timedelta(days=2),
                BookingStatus.CANCELLED,
            ),
            BookingModel(
                user_id=user_models[5].id,
                vehicle=VehicleClass.TRANSIT_VAN,
                service_type=ServiceType.WEDDING_SHUTTLE,
                pickup="Canmore Nordic Centre",
                drop="Silvertip Resort, Canmore",
                scheduled_at=now + timedelta(days=30),
                event_start=time(14, 0),
                event_end=time(18, 0),
                status=BookingStatus.PENDING,
                pricing_method=PricingMethod.HOURLY,
                total_price=wedding.total,
                deposit_amount=calculate_deposit(
                    wedding.total, ServiceType.WEDDING_SHUTTLE
                ),
            ),
        ]
        session.add_all(bookings)
        await session.flush()
        print(f"  Created {len(bookings)} bookings")

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
