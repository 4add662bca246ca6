"""구독 Repository (SQLAlchemy)

잠금 없이 읽고-쓰기 하므로 동시에 같은 구독을 수정하면 나중에 쓴 쪽이 남는다.
"""
from datetime import datetime, timedelta
from typing import Optional, List

from sqlalchemy import select, or_
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.subscription_repository import SubscriptionRepository
from domain.entities.subscription import SubscriptionEntity, LIVE_STATUSES
from domain.enums import SubscriptionStatus
from infrastructure.persistence.models.subscription import Subscription

RENEWAL_WINDOW = timedelta(hours=24)


def _to_entity(row: Subscription) -> SubscriptionEntity:
    return SubscriptionEntity(
        id=row.id, user_id=row.user_id, plan_id=row.plan_id, status=row.status,
        start_date=row.start_date, end_date=row.end_date,
        next_billing_date=row.next_billing_date, trial_end_date=row.trial_end_date,
        auto_renew=row.auto_renew, payment_gateway=row.payment_gateway,
        metadata=dict(row.metadata_json or {}),
        cancelled_at=row.cancelled_at, cancelled_by=row.cancelled_by,
        cancellation_reason=row.cancellation_reason,
    )


class SqlSubscriptionRepository(SubscriptionRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def _list(self, stmt) -> List[SubscriptionEntity]:
        result = await self._session.execute(stmt)
        return [_to_entity(r) for r in result.scalars().all()]

    async def get_by_user(self, user_id: int) -> Optional[SubscriptionEntity]:
        result = await self._session.execute(select(Subscription).where(Subscription.user_id == user_id))
        row = result.scalar_one_or_none()
        return _to_entity(row) if row else None

    async def get_live_by_user(self, user_id: int) -> Optional[SubscriptionEntity]:
        result = await self._session.execute(
            select(Subscription).where(Subscription.user_id == user_id,
                                       Subscription.status.in_(LIVE_STATUSES)))
        row = result.scalar_one_or_none()
        return _to_entity(row) if row else None

    async def list_by_user(self, user_id: int) -> List[SubscriptionEntity]:
        return await self._list(
            select(Subscription).where(Subscription.user_id == user_id).order_by(Subscription.start_date.desc()))

    async def get_by_transaction_reference(self, reference: str,
                                           user_id: Optional[int] = None) -> Optional[SubscriptionEntity]:
        stmt = select(Subscription).where(Subscription.transaction_reference == reference)
        if user_id is not None:
            stmt = stmt.where(Subscription.user_id == user_id)
        result = await self._session.execute(stmt)
        row = result.scalar_one_or_none()
        return _to_entity(row) if row else None

    async def find_due_for_renewal(self, now: datetime) -> List[SubscriptionEntity]:
        return await self._list(
            select(Subscription).where(
                Subscription.status == SubscriptionStatus.ACTIVE,
                Subscription.auto_renew.is_(True),
                Subscription.next_billing_date >= now,
                Subscription.next_billing_date <= now + RENEWAL_WINDOW,
            ).order_by(Subscription.next_billing_date))

    async def find_lapsed(self, now: datetime) -> List[SubscriptionEntity]:
        return await self._list(
            select(Subscription).where(
                Subscription.end_date < now,
                or_(
                    Subscription.status == SubscriptionStatus.PAST_DUE,
                    Subscription.status.in_(LIVE_STATUSES) & Subscription.auto_renew.is_(False),
                ),
            ).order_by(Subscription.end_date))

    async def save(self, subscription: SubscriptionEntity) -> SubscriptionEntity:
        row = await self._session.get(Subscription, subscription.id) if subscription.id else None
        if row is None:
            row = Subscription(user_id=subscription.user_id)
            self._session.add(row)
        row.plan_id = subscription.plan_id
        row.status = subscription.status
        row.start_date = subscription.start_date
        row.end_date = subscription.end_date
        row.next_billing_date = subscription.next_billing_date
        row.trial_end_date = subscription.trial_end_date
        row.auto_renew = subscription.auto_renew
        row.payment_gateway = subscription.payment_gateway
        # JSON 컬럼은 새 dict를 대입해야 변경이 감지된다
        row.metadata_json = dict(subscription.metadata)
        row.transaction_reference = subscription.transaction_reference
        row.cancelled_at = subscription.cancelled_at
        row.cancelled_by = subscription.cancelled_by
        row.cancellation_reason = subscription.cancellation_reason
        await self._session.flush()
        subscription.id = row.id
        return subscription
