"""구독 수명주기 유스케이스

trial -> active -> past_due / cancelled / expired. 갱신은 active, expired, past_due에서만 가능하다.
업무 규칙 위반은 success=False 출력으로, 게이트웨이 통신 오류는 예외로 돌려준다.
"""
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, List, Any

from loguru import logger

from config import settings
from application.ports.plan_repository import PlanRepository
from application.ports.subscription_repository import SubscriptionRepository
from domain.entities.plan import PlanEntity
from domain.entities.subscription import SubscriptionEntity, RENEWABLE_STATUSES
from domain.enums import SubscriptionStatus
from domain.exceptions import (
    DomainError, GatewayError, InvalidTransitionError, PlanNotFoundError, ProviderTransportError,
)


@dataclass
class SubscribeInput:
    user_id: int
    email: str
    plan_id: int
    gateway: Optional[str] = None  # None이면 기본 게이트웨이


@dataclass
class VerifySubscriptionPaymentInput:
    user_id: int
    transaction_reference: str
    gateway: Optional[str] = None


@dataclass
class RenewInput:
    user_id: int
    email: Optional[str] = None
    plan_id: Optional[int] = None
    gateway: Optional[str] = None


@dataclass
class CancelInput:
    user_id: int
    cancelled_by: Optional[int] = None
    reason: Optional[str] = None


@dataclass
class SubscriptionOutput:
    success: bool
    message: Optional[str] = None
    subscription: Optional[SubscriptionEntity] = None
    payment_link: Optional[str] = None
    transaction_reference: Optional[str] = None
    access_code: Optional[str] = None


@dataclass
class RenewalSweepOutput:
    renewed: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    # 일시적 통신 장애로 다음 주기에 다시 시도할 구독
    deferred: List[int] = field(default_factory=list)


def _millis() -> int:
    return int(time.time() * 1000)


class SubscriptionLifecycle:
    def __init__(self, plan_repo: PlanRepository, subscription_repo: SubscriptionRepository, payments):
        self._plans = plan_repo
        self._subscriptions = subscription_repo
        self._payments = payments

    async def _load_plan(self, plan_id: int) -> PlanEntity:
        plan = await self._plans.get_by_id(plan_id)
        if plan is None or not plan.is_active:
            raise PlanNotFoundError(plan_id)
        return plan

    @staticmethod
    def _callback_url() -> str:
        return f"{settings.FRONTEND_URL.rstrip('/')}/dashboard/subscription/callback"

    # ==================== 구독 시작 ====================

    async def subscribe(self, input: SubscribeInput, now: Optional[datetime] = None) -> SubscriptionOutput:
        now = now or datetime.utcnow()
        try:
            plan = await self._load_plan(input.plan_id)
        except PlanNotFoundError as e:
            return SubscriptionOutput(success=False, message=str(e))

        existing = await self._subscriptions.get_by_user(input.user_id)
        if existing is not None and existing.is_live:
            return SubscriptionOutput(success=False, message="이미 이용 중인 구독이 있습니다.",
                                      subscription=existing)

        adapter = await self._payments.get_gateway(input.gateway)
        reference = f"SUB_{input.user_id}_{_millis()}"
        try:
            init = await self._payments.initialize_payment(
                plan.price, input.email, currency=plan.currency, reference=reference,
                callback_url=self._callback_url(),
                metadata={"type": "subscription", "userId": input.user_id, "planId": plan.id},
                gateway=adapter.kind,
            )
        except GatewayError as e:
            logger.warning(f"구독 결제 초기화 실패: user={input.user_id} - {e}")
            return SubscriptionOutput(success=False, message=str(e))

        if existing is not None:
            existing.restart(plan, adapter.kind, init.transaction_reference, init.raw_response, now)
            subscription = existing
        else:
            subscription = SubscriptionEntity.start(input.user_id, plan, adapter.kind,
                                                    init.transaction_reference, init.raw_response, now)
        subscription.metadata = {**subscription.metadata, "email": input.email}
        subscription = await self._subscriptions.save(subscription)

        logger.info(f"구독 생성: user={input.user_id} plan={plan.name} "
                    f"status={subscription.status.value} ref={init.transaction_reference}")
        return SubscriptionOutput(
            success=True,
            message="구독이 생성되었습니다. 결제를 완료해 주세요.",
            subscription=subscription,
            payment_link=init.payment_link,
            transaction_reference=init.transaction_reference,
            access_code=init.access_code,
        )

    async def verify_payment(self, input: VerifySubscriptionPaymentInput) -> SubscriptionOutput:
        """결제 확인 후 거래 ID 저장, trial이면 active로 승격

        게이트웨이를 지정하지 않으면 구독이 결제된 게이트웨이로 확인한다.
        """
        subscription = await self._subscriptions.get_by_transaction_reference(
            input.transaction_reference, user_id=input.user_id)
        if subscription is None:
            return SubscriptionOutput(success=False, message="구독을 찾을 수 없습니다.")

        verification = await self._payments.verify_payment(
            input.transaction_reference, gateway=input.gateway or subscription.payment_gateway)
        if not verification.is_completed:
            return SubscriptionOutput(success=False, subscription=subscription,
                                      message=verification.message or "결제가 완료되지 않았습니다.")

        if subscription.record_payment(verification.transaction_id, verification.raw_response):
            subscription = await self._subscriptions.save(subscription)
            logger.info(f"구독 결제 확인: user={input.user_id} status={subscription.status.value}")
        return SubscriptionOutput(success=True, message="결제가 확인되었습니다.",
                                  subscription=subscription,
                                  transaction_reference=input.transaction_reference)

    # ==================== 갱신 ====================

    async def renew(self, input: RenewInput, now: Optional[datetime] = None) -> SubscriptionOutput:
        now = now or datetime.utcnow()
        subscription = await self._subscriptions.get_by_user(input.user_id)
        if subscription is None or subscription.status not in RENEWABLE_STATUSES:
            return SubscriptionOutput(success=False, message="갱신할 구독이 없습니다.")

        try:
            plan = await self._load_plan(input.plan_id or subscription.plan_id)
        except PlanNotFoundError as e:
            return SubscriptionOutput(success=False, message=str(e))

        email = input.email or subscription.metadata.get("email")
        if not email:
            return SubscriptionOutput(success=False, message="결제 이메일이 없습니다.")

        adapter = await self._payments.get_gateway(input.gateway or subscription.payment_gateway)
        reference = f"RENEW_{subscription.id}_{_millis()}"
        try:
            init = await self._payments.initialize_payment(
                plan.price, email, currency=plan.currency, reference=reference,
                callback_url=self._callback_url(),
                metadata={"type": "renewal", "subscriptionId": subscription.id, "planId": plan.id},
                gateway=adapter.kind,
            )
        except GatewayError as e:
            logger.warning(f"구독 갱신 결제 초기화 실패: user={input.user_id} - {e}")
            return SubscriptionOutput(success=False, message=str(e))

        subscription.renew(plan, {"transactionReference": init.transaction_reference,
                                  "gatewayResponse": init.raw_response}, now)
        subscription.payment_gateway = adapter.kind
        subscription = await self._subscriptions.save(subscription)

        logger.info(f"구독 갱신: user={input.user_id} until={subscription.end_date:%Y-%m-%d}")
        return SubscriptionOutput(
            success=True,
            message="구독이 갱신되었습니다.",
            subscription=subscription,
            payment_link=init.payment_link,
            transaction_reference=init.transaction_reference,
            access_code=init.access_code,
        )

    async def find_due_for_renewal(self, now: Optional[datetime] = None) -> List[SubscriptionEntity]:
        """24시간 안에 청구일이 돌아오는 자동 갱신 구독"""
        return await self._subscriptions.find_due_for_renewal(now or datetime.utcnow())

    async def renew_due(self, now: Optional[datetime] = None) -> RenewalSweepOutput:
        """갱신 대상 일괄 처리. 실패한 구독은 past_due로, 재시도 가능한 통신 장애는 active 그대로 둔다."""
        now = now or datetime.utcnow()
        result = RenewalSweepOutput()
        for due in await self.find_due_for_renewal(now):
            try:
                output = await self.renew(RenewInput(user_id=due.user_id), now)
            except ProviderTransportError as e:
                if e.retryable:
                    result.deferred.append(due.id)
                    logger.warning(f"자동 갱신 보류 (재시도 가능): subscription={due.id} - {e}")
                    continue
                output = SubscriptionOutput(success=False, message=str(e))
            except DomainError as e:
                output = SubscriptionOutput(success=False, message=str(e))
            if output.success:
                result.renewed.append(due.id)
                continue
            due.mark_past_due()
            await self._subscriptions.save(due)
            result.failed.append(due.id)
            logger.warning(f"자동 갱신 실패 -> past_due: subscription={due.id} - {output.message}")
        logger.info(f"자동 갱신 완료: 성공 {len(result.renewed)}건, 실패 {len(result.failed)}건, "
                    f"보류 {len(result.deferred)}건")
        return result

    async def expire_lapsed(self, now: Optional[datetime] = None) -> List[SubscriptionEntity]:
        """기간이 지난 past_due, 자동 갱신 꺼진 구독을 expired로"""
        expired = []
        for subscription in await self._subscriptions.find_lapsed(now or datetime.utcnow()):
            subscription.expire()
            expired.append(await self._subscriptions.save(subscription))
        if expired:
            logger.info(f"구독 만료 처리: {len(expired)}건")
        return expired

    # ==================== 해지/조회 ====================

    async def cancel(self, input: CancelInput, now: Optional[datetime] = None) -> SubscriptionOutput:
        subscription = await self._subscriptions.get_live_by_user(input.user_id)
        if subscription is None:
            return SubscriptionOutput(success=False, message="이용 중인 구독이 없습니다.")
        try:
            subscription.cancel(input.cancelled_by, input.reason, now)
        except InvalidTransitionError as e:
            return SubscriptionOutput(success=False, message=str(e))
        subscription = await self._subscriptions.save(subscription)
        logger.info(f"구독 해지: user={input.user_id} by={input.cancelled_by}")
        return SubscriptionOutput(success=True, message="구독이 해지되었습니다.", subscription=subscription)

    async def get_current(self, user_id: int) -> Optional[SubscriptionEntity]:
        return await self._subscriptions.get_live_by_user(user_id)

    async def history(self, user_id: int) -> List[SubscriptionEntity]:
        return await self._subscriptions.list_by_user(user_id)

    async def mark_past_due_by_reference(self, reference: str) -> Optional[SubscriptionEntity]:
        """갱신 결제 실패 webhook 처리. 해당 참조번호의 active 구독만 past_due로"""
        subscription = await self._subscriptions.get_by_transaction_reference(reference)
        if (subscription is None or subscription.status != SubscriptionStatus.ACTIVE
                or not reference.startswith("RENEW_")):
            return subscription
        subscription.mark_past_due()
        return await self._subscriptions.save(subscription)

    async def record_payment_by_reference(self, reference: str, transaction_id: Optional[str],
                                          gateway_response: Any = None) -> Optional[SubscriptionEntity]:
        """결제 완료 webhook 처리. 반영할 구독이 없으면 None"""
        subscription = await self._subscriptions.get_by_transaction_reference(reference)
        if subscription is None:
            return None
        if subscription.record_payment(transaction_id, gateway_response):
            subscription = await self._subscriptions.save(subscription)
        return subscription
