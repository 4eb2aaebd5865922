"""
Every payment provider notification as received, with its processing outcome.

Rows left with `processed = False` are the dead letters that the admin replay
operation feeds back into the reconciler.
"""

from sqlalchemy import JSON, Boolean, Column, DateTime, Index, Integer, String, Text

from huntbook.db.base import Base, TimestampMixin


class WebhookLog(Base, TimestampMixin):
    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(20), nullable=False, default="paypal")
    event_id = Column(String(64), nullable=True, index=True)
    event_type = Column(String(64), nullable=False)
    resource_type = Column(String(64), nullable=True)
    summary = Column(JSON, nullable=True)
    payload = Column(JSON, nullable=False)
    headers = Column(JSON, nullable=True)
    verification = Column(String(20), nullable=False, default="skipped")  # verified, failed, skipped
    processed = Column(Boolean, nullable=False, default=False)
    outcome = Column(String(20), nullable=True)  # processed, ignored, rejected, failed
    error = Column(Text, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    processed_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (Index("ix_webhook_logs_processed", "processed", "outcome"),)
