"""구독 플랜 Repository (SQLAlchemy)"""
from decimal import Decimal
from typing import Optional, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.plan_repository import PlanRepository
from domain.entities.plan import PlanEntity
from infrastructure.persistence.models.plan import SubscriptionPlan


def _to_entity(row: SubscriptionPlan) -> PlanEntity:
    return PlanEntity(
        id=row.id, name=row.name, price=Decimal(row.price), currency=row.currency,
        billing_cycle=row.billing_cycle, trial_period=row.trial_period or 0,
        features=dict(row.features or {}), is_active=row.is_active, description=row.description,
    )


class SqlPlanRepository(PlanRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, plan_id: int) -> Optional[PlanEntity]:
        row = await self._session.get(SubscriptionPlan, plan_id)
        return _to_entity(row) if row else None

    async def list_active(self) -> List[PlanEntity]:
        result = await self._session.execute(
            select(SubscriptionPlan).where(SubscriptionPlan.is_active.is_(True))
            .order_by(SubscriptionPlan.display_order, SubscriptionPlan.price))
        return [_to_entity(r) for r in result.scalars().all()]
