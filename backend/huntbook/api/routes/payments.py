"""
Client-side payment approval records.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from huntbook.core.security import get_current_user_id
from huntbook.db.session import get_db
from huntbook.schemas.payment import ClientPaymentCreate, PaymentResponse
from huntbook.services.payment_service import PaymentReconciler

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("", response_model=PaymentResponse, status_code=status.HTTP_201_CREATED)
async def record_payment(
    payment_data: ClientPaymentCreate,
    user_id: str = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    """Store the details the client got back from the provider after approval."""
    return await PaymentReconciler(db).record_client_payment(user_id, payment_data)
