"""Initial schema: users, events, bookings, payments, webhook log and mail queue.

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


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table, keyed by the identity provider's uid
    op.create_table(
        "users",
        sa.Column("id", sa.String(128), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("display_name", sa.String(255), nullable=True),
        sa.Column("photo_url", sa.Text(), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'user'")),
        sa.Column("membership_years", sa.JSON(), nullable=False),
        sa.Column("last_booking_year", sa.Integer(), nullable=True),
        sa.Column("personal_details_last_confirmed", sa.DateTime(timezone=True), nullable=True),
        sa.Column("events_booked", sa.JSON(), nullable=False),
        sa.Column("pending_bookings", sa.JSON(), nullable=False),
        sa.Column("name", sa.String(100), nullable=True),
        sa.Column("surname", sa.String(100), nullable=True),
        sa.Column("birth_date", sa.String(20), nullable=True),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column("tax_id", sa.String(50), nullable=True),
        sa.Column("instagram", sa.String(100), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"])

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("date", sa.String(50), nullable=False),
        sa.Column("time", sa.String(50), nullable=False),
        sa.Column("location", sa.String(255), nullable=False),
        sa.Column("venue_name", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("image", sa.Text(), nullable=True),
        sa.Column("spots", sa.Integer(), nullable=False),
        sa.Column("spots_left", sa.Integer(), nullable=False),
        sa.Column("attendees", sa.JSON(), nullable=False),
        sa.Column("pending_bookings", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'upcoming'")),
        sa.Column("member_price", sa.Float(), nullable=True),
        sa.Column("non_member_price", sa.Float(), nullable=True),
        sa.Column("payment_amount", sa.Float(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("spots >= 0", name="check_spots_non_negative"),
        sa.CheckConstraint("spots_left >= 0", name="check_spots_left_non_negative"),
        sa.CheckConstraint("spots_left <= spots", name="check_spots_left_lte_total"),
        sa.CheckConstraint("type IN ('hunt', 'workshop', 'exhibition', 'walk')", name="check_event_type"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    # Listings filter by type; stored status narrows maintenance scans
    op.create_index("ix_events_status_type", "events", ["status", "type"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'confirmed'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'NOT_REQUIRED'")),
        sa.Column("contact_email", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("contact_phone", sa.String(50), nullable=False, server_default=sa.text("''")),
        sa.Column("contact_display_name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("specific_request", sa.Text(), nullable=True),
        sa.Column("payment", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('confirmed', 'cancelled', 'payment-pending')", name="check_booking_status"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    # At most one non-cancelled booking per user and event; cancelled rows stay as history
    op.create_index(
        "uq_active_booking_per_user_event",
        "bookings",
        ["user_id", "event_id"],
        unique=True,
        postgresql_where=sa.text("status != 'cancelled'"),
        sqlite_where=sa.text("status != 'cancelled'"),
    )

    # Payments table
    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("payment_id", sa.String(64), nullable=True),
        sa.Column("order_id", sa.String(64), nullable=True),
        sa.Column("payer_id", sa.String(64), nullable=True),
        sa.Column("payer_email", sa.String(255), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'EUR'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("custom_id", sa.String(255), nullable=True),
        sa.Column("source", sa.String(20), nullable=False, server_default=sa.text("'client'")),
        sa.Column("event_id", sa.Integer(), sa.ForeignKey("events.id", ondelete="SET NULL"), nullable=True),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True),
        sa.Column("webhook_details", sa.JSON(), nullable=True),
        sa.Column("full_details", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_payments_id", "payments", ["id"])
    op.create_index("ix_payments_order_id", "payments", ["order_id"])
    op.create_index("ix_payments_event_id", "payments", ["event_id"])
    op.create_index("ix_payments_user_id", "payments", ["user_id"])
    # One row per provider transaction; client and webhook race to create it
    op.create_index(
        "uq_payments_payment_id",
        "payments",
        ["payment_id"],
        unique=True,
        postgresql_where=sa.text("payment_id IS NOT NULL"),
        sqlite_where=sa.text("payment_id IS NOT NULL"),
    )

    # Webhook log, doubles as the dead-letter store for replay
    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(20), nullable=False, server_default=sa.text("'paypal'")),
        sa.Column("event_id", sa.String(64), nullable=True),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("resource_type", sa.String(64), nullable=True),
        sa.Column("summary", sa.JSON(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("headers", sa.JSON(), nullable=True),
        sa.Column("verification", sa.String(20), nullable=False, server_default=sa.text("'skipped'")),
        sa.Column("processed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("outcome", sa.String(20), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_webhook_logs_id", "webhook_logs", ["id"])
    op.create_index("ix_webhook_logs_event_id", "webhook_logs", ["event_id"])
    op.create_index("ix_webhook_logs_processed", "webhook_logs", ["processed", "outcome"])

    # Outbound mail queue, drained by a separate worker
    op.create_table(
        "outbound_mail",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("to", sa.String(255), nullable=False),
        sa.Column("subject", sa.String(255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("type", sa.String(50), nullable=False, server_default=sa.text("'booking_confirmation'")),
        sa.Column("booking_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        *_timestamps(),
    )
    op.create_index("ix_outbound_mail_id", "outbound_mail", ["id"])
    op.create_index("ix_outbound_mail_booking_id", "outbound_mail", ["booking_id"])


def downgrade() -> None:
    op.drop_table("outbound_mail")
    op.drop_table("webhook_logs")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("events")
    op.drop_table("users")
