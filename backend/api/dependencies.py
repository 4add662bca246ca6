"""
FastAPI 의존성 주입 (Depends)

오케스트레이터는 프로세스당 하나, 유스케이스는 요청 세션마다 구성한다.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from application.use_cases.payout_lifecycle import PayoutLifecycle
from application.use_cases.subscription_lifecycle import SubscriptionLifecycle
from application.use_cases.webhook_dispatcher import WebhookDispatcher
from infrastructure.payment.orchestrator import PaymentOrchestrator
from infrastructure.persistence.database import get_session
from infrastructure.persistence.repositories import (
    SqlPlanRepository, SqlSubscriptionRepository, SqlPayoutRepository, SqlProcessedWebhookRepository,
)


@lru_cache()
def get_orchestrator() -> PaymentOrchestrator:
    """게이트웨이 어댑터를 캐시하는 오케스트레이터 싱글톤"""
    return PaymentOrchestrator()


async def get_subscription_lifecycle(
    session: AsyncSession = Depends(get_session),
    payments: PaymentOrchestrator = Depends(get_orchestrator),
) -> SubscriptionLifecycle:
    return SubscriptionLifecycle(SqlPlanRepository(session), SqlSubscriptionRepository(session), payments)


async def get_payout_lifecycle(
    session: AsyncSession = Depends(get_session),
    payments: PaymentOrchestrator = Depends(get_orchestrator),
) -> PayoutLifecycle:
    return PayoutLifecycle(SqlPayoutRepository(session), payments)


async def get_webhook_dispatcher(
    session: AsyncSession = Depends(get_session),
    payments: PaymentOrchestrator = Depends(get_orchestrator),
    subscriptions: SubscriptionLifecycle = Depends(get_subscription_lifecycle),
    payouts: PayoutLifecycle = Depends(get_payout_lifecycle),
) -> WebhookDispatcher:
    return WebhookDispatcher(payments, SqlProcessedWebhookRepository(session), subscriptions, payouts)
