"""Initial schema: garages and reservations with the availability index.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Garages table (written by the admin side, read by reservations)
    op.create_table(
        "garages",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("total_spaces", sa.Integer(), nullable=False),
        sa.Column("price_per_hour", sa.Numeric(10, 2), nullable=False),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("amenities", sa.String(1000), nullable=False, server_default=sa.text("''")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("total_spaces > 0", name="check_garage_total_spaces_positive"),
        sa.CheckConstraint("price_per_hour >= 0", name="check_garage_price_non_negative"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="check_garage_rating_range"),
    )
    op.create_index("ix_garages_id", "garages", ["id"])

    # Reservations table
    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("garage_id", sa.Integer(), sa.ForeignKey("garages.id"), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.CheckConstraint("start_time < end_time", name="check_reservation_window_order"),
        sa.CheckConstraint("price >= 0", name="check_reservation_price_non_negative"),
        sa.CheckConstraint(
            "status IN ('active', 'completed', 'cancelled', 'refunded')",
            name="check_reservation_status",
        ),
    )
    op.create_index("ix_reservations_user_id", "reservations", ["user_id"])
    # Every admission runs the overlap query
    #   WHERE garage_id = ? AND status = 'active' AND start_time < ? AND end_time > ?
    # while holding the garage lease, so it has to stay an index range scan.
    op.create_index(
        "ix_reservations_availability",
        "reservations",
        ["garage_id", "status", "start_time", "end_time"],
    )


def downgrade() -> None:
    op.drop_table("reservations")
    op.drop_table("garages")
