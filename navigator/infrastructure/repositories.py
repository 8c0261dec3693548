"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AddOnModel, BookingModel, UserModel
from navigator.domain.entities import AddOn, Booking
from navigator.domain.enums import ACTIVE_STATUSES, BookingStatus, VehicleClass


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self, booking: BookingModel, add_ons: Iterable[AddOnModel] = ()
    ) -> BookingModel:
        booking.add_ons = list(add_ons)
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get_by_id(
        self, booking_id: str, *, fresh: bool = False
    ) -> Optional[BookingModel]:
        """Fetch a booking; ``fresh`` bypasses the session identity map."""
        query = select(BookingModel).where(BookingModel.id == booking_id)
        if fresh:
            query = query.execution_options(populate_existing=True)
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def find_active_for_user(self, user_id: int) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.user_id == user_id,
                BookingModel.status.in_(ACTIVE_STATUSES),
            )
            .order_by(BookingModel.created_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def find_vehicle_conflict(
        self, vehicle: VehicleClass, start: datetime, end: datetime
    ) -> Optional[BookingModel]:
        """First non-terminal booking of *vehicle* scheduled in [start, end]."""
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.vehicle == vehicle,
                BookingModel.status.in_(ACTIVE_STATUSES),
                BookingModel.scheduled_at >= start,
                BookingModel.scheduled_at <= end,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_user(
        self, user_id: int, statuses: Iterable[BookingStatus]
    ) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(
                BookingModel.user_id == user_id,
                BookingModel.status.in_(list(statuses)),
            )
            .order_by(BookingModel.scheduled_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).order_by(BookingModel.created_at.desc())
        )
        return list(result.scalars().all())

    async def transition(
        self,
        booking_id: str,
        *,
        expected_version: int,
        expected_status: BookingStatus,
        **values,
    ) -> bool:
        """Conditional UPDATE on (id, version, status); bumps the version.

        Returns False when another writer got there first -- the caller
        must re-read and re-evaluate.
        """
        result = await self.session.execute(
            update(BookingModel)
            .where(
                BookingModel.id == booking_id,
                BookingModel.version == expected_version,
                BookingModel.status == expected_status,
            )
            .values(version=BookingModel.version + 1, **values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def attach_checkout(
        self, booking: BookingModel, session_id: str, url: Optional[str]
    ) -> None:
        booking.stripe_session_id = session_id
        booking.checkout_url = url
        await self.session.flush()


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)


def to_entity(model: BookingModel) -> Booking:
    """Map an ORM row onto the ``Booking`` domain entity."""
    return Booking(
        id=model.id,
        user_id=model.user_id,
        vehicle=model.vehicle,
        service_type=model.service_type,
        pickup=model.pickup,
        drop=model.drop,
        scheduled_at=model.scheduled_at,
        status=BookingStatus(model.status),
        total_price=model.total_price,
        deposit_amount=model.deposit_amount,
        deposit_paid=bool(model.deposit_paid),
        final_paid=bool(model.final_paid),
        payment_reference=model.payment_reference,
        completed_at=model.completed_at,
        version=model.version,
        add_ons=[
            AddOn(
                add_on=a.add_on,
                price=a.price,
                duration_hours=a.duration_hours,
                location=a.location,
                notes=a.notes,
            )
            for a in model.add_ons
        ],
    )
