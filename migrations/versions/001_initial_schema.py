"""Initial schema: users, bookings and booking add-ons.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "001"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_STATUS_SQL = "status IN ('PENDING', 'APPROVED', 'AWAITING_FINAL_PAYMENT')"


def upgrade() -> None:
    # ── users ─────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("is_admin", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False
        ),
        sa.Column(
            "vehicle",
            sa.Enum("LUXURY_SUV", "TRANSIT_VAN", name="vehicleclass"),
            nullable=False,
        ),
        sa.Column(
            "service_type",
            sa.Enum(
                "AIRPORT_TRANSFER",
                "WEDDING_SHUTTLE",
                "ENGAGEMENT",
                "CEREMONY",
                name="servicetype",
            ),
            nullable=False,
        ),
        sa.Column("pickup", sa.String(512), nullable=False),
        sa.Column("pickup_lat", sa.Float, nullable=True),
        sa.Column("pickup_lng", sa.Float, nullable=True),
        sa.Column("pickup_place_id", sa.String(255), nullable=True),
        sa.Column("drop", sa.String(512), nullable=False),
        sa.Column("drop_lat", sa.Float, nullable=True),
        sa.Column("drop_lng", sa.Float, nullable=True),
        sa.Column("drop_place_id", sa.String(255), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_start", sa.Time, nullable=True),
        sa.Column("event_end", sa.Time, nullable=True),
        sa.Column("additional_hours", sa.Float, nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING",
                "APPROVED",
                "AWAITING_FINAL_PAYMENT",
                "COMPLETED",
                "CANCELLED",
                name="bookingstatus",
            ),
            nullable=False,
        ),
        sa.Column(
            "pricing_method",
            sa.Enum("ROUTE_BASED", "DISTANCE_BASED", "HOURLY", name="pricingmethod"),
            nullable=True,
        ),
        sa.Column("distance_km", sa.Float, nullable=True),
        sa.Column("total_price", sa.Float, nullable=False),
        sa.Column("deposit_amount", sa.Float, nullable=False),
        sa.Column("deposit_paid", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("final_paid", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("stripe_session_id", sa.String(255), nullable=True),
        sa.Column("checkout_url", sa.String(1024), nullable=True),
        sa.Column("final_session_id", sa.String(255), nullable=True),
        sa.Column("final_payment_url", sa.String(1024), nullable=True),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        ),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_user", "bookings", ["user_id"])
    op.create_index(
        "idx_bookings_vehicle_time", "bookings", ["vehicle", "scheduled_at"]
    )
    op.create_index("idx_bookings_session", "bookings", ["stripe_session_id"])
    # One active booking per customer
    op.create_index(
        "uq_bookings_active_user",
        "bookings",
        ["user_id"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
    )

    # ── booking_add_ons ───────────────────────────────────────────────
    op.create_table(
        "booking_add_ons",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id",
            sa.String(36),
            sa.ForeignKey("bookings.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "add_on",
            sa.Enum("CEREMONY_PICKUP_DROPOFF", name="addontype"),
            nullable=False,
        ),
        sa.Column("price", sa.Float, nullable=False),
        sa.Column("duration_hours", sa.Float, nullable=True),
        sa.Column("location", sa.String(512), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
    )
    op.create_index("idx_add_ons_booking", "booking_add_ons", ["booking_id"])


def downgrade() -> None:
    op.drop_table("booking_add_ons")
    op.drop_table("bookings")
    op.drop_table("users")
    for enum_name in (
        "addontype",
        "pricingmethod",
        "bookingstatus",
        "servicetype",
        "vehicleclass",
    ):
        op.execute(f"DROP TYPE IF EXISTS {enum_name}")
