"""Initial schema: users, cities, buses, trips, reservations and seat records.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *timestamps(),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "cities",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(10), nullable=False, unique=True),
        *timestamps(),
    )
    op.create_index("ix_cities_id", "cities", ["id"])

    op.create_table(
        "buses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bus_code", sa.String(50), nullable=False, unique=True),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("bus_type", sa.String(20), nullable=False, server_default=sa.text("'standard'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *timestamps(),
        sa.CheckConstraint("capacity > 0", name="check_bus_capacity_positive"),
        sa.CheckConstraint("bus_type IN ('standard', 'premium')", name="check_bus_type"),
    )
    op.create_index("ix_buses_id", "buses", ["id"])

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("origin_city_id", sa.Integer(), sa.ForeignKey("cities.id"), nullable=False),
        sa.Column("destination_city_id", sa.Integer(), sa.ForeignKey("cities.id"), nullable=False),
        sa.Column("departure_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("arrival_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("bus_id", sa.Integer(), sa.ForeignKey("buses.id"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *timestamps(),
    )
    op.create_index("ix_trips_id", "trips", ["id"])
    # "Upcoming" listings and ordering by departure both filter/sort on this column
    op.create_index("ix_trips_departure_time", "trips", ["departure_time"])

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reservation_code", sa.String(32), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("seat_count", sa.Integer(), nullable=False),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("reserved_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint("reservation_code", name="uq_reservations_code"),
        sa.CheckConstraint("seat_count > 0", name="check_reservation_seat_count_positive"),
        sa.CheckConstraint("total_price >= 0", name="check_reservation_total_price_non_negative"),
        sa.CheckConstraint("status IN ('confirmed', 'cancelled')", name="check_reservation_status"),
        sa.CheckConstraint(
            "(status = 'cancelled' AND cancelled_at IS NOT NULL)"
            " OR (status = 'confirmed' AND cancelled_at IS NULL)",
            name="check_reservation_cancelled_at_matches_status",
        ),
    )
    op.create_index("ix_reservations_id", "reservations", ["id"])
    # Every capacity check sums seat_count WHERE trip_id = ? AND status = 'confirmed'
    op.create_index("ix_reservations_trip_status", "reservations", ["trip_id", "status"])
    op.create_index("ix_reservations_user_status", "reservations", ["user_id", "status"])
    op.create_index("ix_reservations_created_at", "reservations", ["created_at"])

    op.create_table(
        "reservation_seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reservation_id", sa.Integer(), sa.ForeignKey("reservations.id"), nullable=False),
        sa.Column("seat_number", sa.Integer(), nullable=False),
        *timestamps(),
        sa.UniqueConstraint("reservation_id", "seat_number", name="uq_reservation_seat_number"),
    )
    op.create_index("ix_reservation_seats_id", "reservation_seats", ["id"])
    op.create_index("ix_reservation_seats_reservation_id", "reservation_seats", ["reservation_id"])


def downgrade() -> None:
    op.drop_table("reservation_seats")
    op.drop_table("reservations")
    op.drop_table("trips")
    op.drop_table("buses")
    op.drop_table("cities")
    op.drop_table("users")
