"""지급 Repository (SQLAlchemy)"""
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.payout_repository import PayoutRepository
from domain.entities.payout import PayoutEntity
from infrastructure.persistence.models.payout import Payout


def _to_entity(row: Payout) -> PayoutEntity:
    return PayoutEntity(
        id=row.id, affiliate_id=row.affiliate_id, store_id=row.store_id,
        commission_ids=list(row.commission_ids or []), amount=Decimal(row.amount),
        currency=row.currency, payment_method=row.payment_method,
        payment_details=dict(row.payment_details or {}), status=row.status,
        transaction_id=row.transaction_id, transaction_reference=row.transaction_reference,
        error=row.error, processed_at=row.processed_at, processed_by=row.processed_by,
        notes=row.notes,
    )


class SqlPayoutRepository(PayoutRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, payout_id: int) -> Optional[PayoutEntity]:
        row = await self._session.get(Payout, payout_id)
        return _to_entity(row) if row else None

    async def get_by_transaction_reference(self, reference: str) -> Optional[PayoutEntity]:
        result = await self._session.execute(
            select(Payout).where(Payout.transaction_reference == reference)
            .order_by(desc(Payout.id)).limit(1))
        row = result.scalar_one_or_none()
        return _to_entity(row) if row else None

    async def save(self, payout: PayoutEntity) -> PayoutEntity:
        row = await self._session.get(Payout, payout.id) if payout.id else None
        if row is None:
            row = Payout()
            self._session.add(row)
        row.affiliate_id = payout.affiliate_id
        row.store_id = payout.store_id
        row.commission_ids = list(payout.commission_ids)
        row.amount = payout.amount
        row.currency = payout.currency
        row.payment_method = payout.payment_method
        row.payment_details = dict(payout.payment_details)
        row.status = payout.status
        row.transaction_id = payout.transaction_id
        row.transaction_reference = payout.transaction_reference
        row.error = payout.error
        row.processed_at = payout.processed_at
        row.processed_by = payout.processed_by
        row.notes = payout.notes
        await self._session.flush()
        payout.id = row.id
        return payout
