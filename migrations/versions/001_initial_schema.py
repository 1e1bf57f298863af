"""Initial schema: appointments, unavailable_slots.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("timeslot", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("appointment_type", sa.String(), nullable=False, server_default="Initial"),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("goals", sa.String(), nullable=True),
        sa.Column("reschedule_reason", sa.String(), nullable=True),
        sa.Column("requested_date", sa.String(), nullable=True),
        sa.Column("requested_timeslot", sa.String(), nullable=True),
        sa.Column("late_reschedule", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("potential_late_fee", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.Column("access_token", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_date"), "appointments", ["date"], unique=False)
    op.create_index(op.f("ix_appointments_status"), "appointments", ["status"], unique=False)
    op.create_index(op.f("ix_appointments_access_token"), "appointments", ["access_token"], unique=True)
    # One pending/confirmed booking per slot; the write path relies on this
    op.create_index(
        "uq_appointments_active_slot",
        "appointments",
        ["date", "timeslot"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'confirmed')"),
    )

    op.create_table(
        "unavailable_slots",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("date", sa.String(), nullable=False),
        sa.Column("timeslots", sa.JSON(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_unavailable_slots_date"), "unavailable_slots", ["date"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_unavailable_slots_date"), table_name="unavailable_slots")
    op.drop_table("unavailable_slots")
    op.drop_index("uq_appointments_active_slot", table_name="appointments")
    op.drop_index(op.f("ix_appointments_access_token"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_status"), table_name="appointments")
    op.drop_index(op.f("ix_appointments_date"), table_name="appointments")
    op.drop_table("appointments")
