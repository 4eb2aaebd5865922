"""
Outbound mail queue. A separate mail worker delivers rows in `pending` state.
"""

from sqlalchemy import Column, Integer, String, Text

from huntbook.db.base import Base, TimestampMixin


class OutboundMail(Base, TimestampMixin):
    __tablename__ = "outbound_mail"

    id = Column(Integer, primary_key=True, index=True)
    to = Column(String(255), nullable=False)
    subject = Column(String(255), nullable=False)
    body = Column(Text, nullable=False)
    type = Column(String(50), nullable=False, default="booking_confirmation")
    booking_id = Column(Integer, nullable=True, index=True)
    status = Column(String(20), nullable=False, default="pending")
