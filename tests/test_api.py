"""
Integration tests for the REST API endpoints.

The app runs against the SQLite fixtures from ``conftest``: the booking
service, pricing engine and payment gateway providers are overridden so
no Stripe, Redis or Google call is made.  Webhook signature checking is
exercised through the mocked gateway's ``parse_event``.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.exc import SQLAlchemyError

from navigator.api.app import create_app
from navigator.api.dependencies import (
    get_booking_service,
    get_db,
    get_payment_gateway,
    get_pricing_engine,
)
from navigator.api.middleware import limiter
from navigator.domain.enums import PaymentPurpose, VehicleClass
from navigator.domain.errors import ExternalServiceFailure, SignatureInvalid
from navigator.services.payments import CHECKOUT_COMPLETED, PaymentEvent

SUV = VehicleClass.LUXURY_SUV.value
VAN = VehicleClass.TRANSIT_VAN.value


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, booking_service, pricing_engine, gateway):
    """AsyncClient wired to the SQLite-backed service fixtures."""

    async def _test_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    app.dependency_overrides[get_booking_service] = lambda: booking_service
    app.dependency_overrides[get_pricing_engine] = lambda: pricing_engine
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    limiter.reset()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def booking_body(user_id: int, **overrides) -> dict:
    body = {
        "user_id": user_id,
        "vehicle": SUV,
        "pickup": "YYC Airport",
        "drop": "Canmore",
        "scheduled_at": "2026-11-01T10:00:00Z",
        "customer_email": "olivia@example.com",
    }
    body.update(overrides)
    return body


def deposit_event(booking_id: str, purpose=PaymentPurpose.DEPOSIT) -> PaymentEvent:
    return PaymentEvent(
        type=CHECKOUT_COMPLETED,
        session_id="cs_test_1",
        booking_id=booking_id,
        purpose=purpose,
        payment_reference="pi_123",
    )


async def post_webhook(client: AsyncClient):
    return await client.post(
        "/api/v1/payments/webhook",
        content=b'{"type": "checkout.session.completed"}',
        headers={"stripe-signature": "t=1,v1=abc"},
    )


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_price_estimate(client: AsyncClient):
    resp = await client.get(
        "/api/v1/price-estimate",
        params={"vehicle": SUV, "pickup": "YYC Airport", "drop": "Canmore"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_price"] == 518.44
    assert data["deposit_amount"] == 181.45
    assert data["remaining_amount"] == 336.99
    assert data["pricing_method"] == "ROUTE_BASED"
    assert data["route"] == "YYC-Canmore"


@pytest.mark.asyncio
async def test_price_estimate_unknown_route(client: AsyncClient):
    resp = await client.get(
        "/api/v1/price-estimate",
        params={"vehicle": SUV, "pickup": "Edmonton", "drop": "Jasper"},
    )
    assert resp.status_code == 400
    assert resp.json()["detail"].startswith("Unable to calculate price")


@pytest.mark.asyncio
async def test_create_booking_returns_201(client: AsyncClient, users, gateway):
    resp = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    assert resp.status_code == 201
    data = resp.json()
    assert data["booking"]["status"] == "Pending"
    assert data["booking"]["total_price"] == 518.44
    assert data["booking"]["deposit_paid"] is False
    assert data["session_id"] == "cs_test_1"
    assert data["checkout_url"] == "https://checkout.test/1"
    gateway.create_checkout.assert_awaited_once()


@pytest.mark.asyncio
async def test_second_active_booking_returns_409(client: AsyncClient, users):
    await client.post("/api/v1/bookings", json=booking_body(users[0]))
    resp = await client.post("/api/v1/bookings", json=booking_body(users[0], vehicle=VAN))
    assert resp.status_code == 409
    assert resp.json()["detail"] == "You already have an active booking."


@pytest.mark.asyncio
async def test_create_validates_body(client: AsyncClient, users):
    resp = await client.post("/api/v1/bookings", json=booking_body(users[0], pickup=""))
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_checkout_failure_hides_provider_detail(client: AsyncClient, users, gateway):
    gateway.create_checkout.side_effect = ExternalServiceFailure("Stripe error: sk_live_...")
    resp = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    assert resp.status_code == 502
    assert resp.json() == {"detail": "Something went wrong. Please try again."}

    active = await client.get("/api/v1/bookings/active", params={"user_id": users[0]})
    assert active.json() is None


@pytest.mark.asyncio
async def test_get_booking(client: AsyncClient, users):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]

    resp = await client.get(f"/api/v1/bookings/{booking_id}")
    assert resp.status_code == 200
    assert resp.json()["id"] == booking_id
    assert resp.json()["remaining_amount"] == 336.99


@pytest.mark.asyncio
async def test_get_booking_not_found(client: AsyncClient):
    resp = await client.get("/api/v1/bookings/does-not-exist")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_cancel_pending_booking(client: AsyncClient, users):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]

    resp = await client.patch(
        f"/api/v1/bookings/{booking_id}/cancel", json={"user_id": users[0]}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "Cancelled"

    history = await client.get("/api/v1/bookings/history", params={"user_id": users[0]})
    assert [b["id"] for b in history.json()] == [booking_id]


@pytest.mark.asyncio
async def test_cancel_twice_fails(client: AsyncClient, users):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]
    await client.patch(f"/api/v1/bookings/{booking_id}/cancel", json={"user_id": users[0]})

    resp = await client.patch(
        f"/api/v1/bookings/{booking_id}/cancel", json={"user_id": users[0]}
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_continue_payment(client: AsyncClient, users):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]

    resp = await client.post(
        f"/api/v1/bookings/{booking_id}/continue-payment", json={"user_id": users[0]}
    )
    assert resp.status_code == 200
    assert resp.json() == {"session_id": "cs_test_2", "checkout_url": "https://checkout.test/2"}


@pytest.mark.asyncio
async def test_active_booking(client: AsyncClient, users):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))

    resp = await client.get("/api/v1/bookings/active", params={"user_id": users[0]})
    assert resp.status_code == 200
    assert resp.json()["id"] == created.json()["booking"]["id"]


# ── Webhook ───────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_webhook_bad_signature_changes_nothing(client: AsyncClient, users, gateway):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]
    gateway.parse_event.side_effect = SignatureInvalid("bad signature")

    resp = await post_webhook(client)
    assert resp.status_code == 400
    assert resp.json() == {"detail": "Webhook Error"}

    booking = await client.get(f"/api/v1/bookings/{booking_id}")
    assert booking.json()["status"] == "Pending"


@pytest.mark.asyncio
async def test_webhook_unknown_booking_is_acknowledged(client: AsyncClient, gateway):
    gateway.parse_event.return_value = deposit_event("no-such-booking")
    resp = await post_webhook(client)
    assert resp.status_code == 200
    assert resp.json() == {"received": True}


@pytest.mark.asyncio
async def test_webhook_deposit_approves_booking(client: AsyncClient, users, gateway):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]
    gateway.parse_event.return_value = deposit_event(booking_id)

    resp = await post_webhook(client)
    assert resp.status_code == 200

    booking = (await client.get(f"/api/v1/bookings/{booking_id}")).json()
    assert booking["status"] == "Approved"
    assert booking["deposit_paid"] is True
    signature = gateway.parse_event.call_args.args[1]
    assert signature == "t=1,v1=abc"


@pytest.mark.asyncio
async def test_webhook_database_failure_returns_500(
    client: AsyncClient, booking_service, gateway, monkeypatch
):
    gateway.parse_event.return_value = deposit_event("b-1")
    monkeypatch.setattr(
        booking_service,
        "handle_payment_event",
        AsyncMock(side_effect=SQLAlchemyError("connection lost")),
    )

    resp = await post_webhook(client)
    assert resp.status_code == 500
    assert resp.json() == {"detail": "Database Update Failed"}


# ── Admin ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_admin_final_payment_flow(client: AsyncClient, users, gateway):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]
    gateway.parse_event.return_value = deposit_event(booking_id)
    await post_webhook(client)

    resp = await client.post(f"/api/v1/admin/bookings/{booking_id}/final-payment")
    assert resp.status_code == 200
    data = resp.json()
    assert data["booking"]["status"] == "AwaitingFinalPayment"
    assert data["payment_url"] == "https://checkout.test/2"
    assert gateway.create_checkout.await_args.kwargs["amount"] == 336.99

    gateway.parse_event.return_value = deposit_event(booking_id, PaymentPurpose.FINAL)
    await post_webhook(client)
    booking = (await client.get(f"/api/v1/bookings/{booking_id}")).json()
    assert booking["status"] == "Completed"
    assert booking["final_paid"] is True


@pytest.mark.asyncio
async def test_admin_final_payment_requires_approved(client: AsyncClient, users):
    created = await client.post("/api/v1/bookings", json=booking_body(users[0]))
    booking_id = created.json()["booking"]["id"]

    resp = await client.post(f"/api/v1/admin/bookings/{booking_id}/final-payment")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_admin_lists_bookings(client: AsyncClient, users):
    await client.post("/api/v1/bookings", json=booking_body(users[0]))
    await client.post("/api/v1/bookings", json=booking_body(users[1], vehicle=VAN))

    resp = await client.get("/api/v1/admin/bookings")
    assert resp.status_code == 200
    assert len(resp.json()) == 2
