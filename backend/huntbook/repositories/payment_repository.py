"""
Payment store.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.models.payment import Payment


class PaymentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, payment_pk: int) -> Optional[Payment]:
        result = await self.session.execute(select(Payment).where(Payment.id == payment_pk))
        return result.scalar_one_or_none()

    async def find_by_payment_id(self, payment_id: str) -> Optional[Payment]:
        if not payment_id:
            return None
        result = await self.session.execute(
            select(Payment).where(Payment.payment_id == payment_id).order_by(Payment.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def find_by_order_id(self, order_id: str) -> Optional[Payment]:
        if not order_id:
            return None
        result = await self.session.execute(
            select(Payment).where(Payment.order_id == order_id).order_by(Payment.id).limit(1)
        )
        return result.scalar_one_or_none()

    async def list_for_event(self, event_id: int) -> list[Payment]:
        result = await self.session.execute(
            select(Payment).where(Payment.event_id == event_id).order_by(Payment.id)
        )
        return list(result.scalars().all())

    async def add(self, payment: Payment) -> Payment:
        self.session.add(payment)
        await self.session.flush()
        await self.session.refresh(payment)
        return payment

    async def update(self, payment: Payment, **values) -> Payment:
        for key, value in values.items():
            setattr(payment, key, value)
        await self.session.flush()
        return payment
