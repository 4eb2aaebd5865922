"""
Payment records correlated to bookings.

A payment can be created by the client right after provider approval or by the
webhook handler when nothing matched yet. The partial unique index on
`payment_id` keeps find-or-create from producing two rows for one transaction.
"""

from sqlalchemy import JSON, Column, Float, ForeignKey, Index, Integer, String, text

from huntbook.db.base import Base, TimestampMixin

PAYMENT_COMPLETED = "COMPLETED"
PAYMENT_FAILED = "FAILED"
PAYMENT_REFUNDED = "REFUNDED"
PAYMENT_REVERSED = "REVERSED"
PAYMENT_PENDING = "PENDING"


class Payment(Base, TimestampMixin):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(String(64), nullable=True)  # provider transaction id
    order_id = Column(String(64), nullable=True, index=True)
    payer_id = Column(String(64), nullable=True)
    payer_email = Column(String(255), nullable=True)
    amount = Column(Float, nullable=False, default=0)
    currency = Column(String(3), nullable=False, default="EUR")
    status = Column(String(20), nullable=False, default=PAYMENT_PENDING)
    custom_id = Column(String(255), nullable=True)
    source = Column(String(20), nullable=False, default="client")

    event_id = Column(Integer, ForeignKey("events.id", ondelete="SET NULL"), nullable=True, index=True)
    user_id = Column(String(128), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)

    webhook_details = Column(JSON, nullable=True)
    full_details = Column(JSON, nullable=True)

    __table_args__ = (
        Index(
            "uq_payments_payment_id",
            "payment_id",
            unique=True,
            postgresql_where=text("payment_id IS NOT NULL"),
            sqlite_where=text("payment_id IS NOT NULL"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, payment_id={self.payment_id}, status={self.status})>"
