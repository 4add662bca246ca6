"""구독 도메인 엔티티"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from domain.entities.plan import PlanEntity
from domain.enums import SubscriptionStatus, GatewayKind
from domain.exceptions import InvalidTransitionError

LIVE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL)
RENEWABLE_STATUSES = (SubscriptionStatus.ACTIVE, SubscriptionStatus.EXPIRED, SubscriptionStatus.PAST_DUE)


@dataclass
class SubscriptionEntity:
    """사용자당 하나만 존재하는 구독. 삭제하지 않고 상태만 바꾼다."""
    user_id: int
    plan_id: int
    status: SubscriptionStatus
    start_date: datetime
    end_date: datetime
    next_billing_date: Optional[datetime] = None
    trial_end_date: Optional[datetime] = None
    auto_renew: bool = True
    payment_gateway: GatewayKind = GatewayKind.PAYSTACK
    metadata: Dict[str, Any] = field(default_factory=dict)
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[int] = None
    cancellation_reason: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def start(cls, user_id: int, plan: PlanEntity, gateway: GatewayKind,
              transaction_reference: str, gateway_response: Any = None,
              now: Optional[datetime] = None) -> "SubscriptionEntity":
        """구독 시작. 체험 기간이 있으면 trial, 없으면 active로 시작한다."""
        now = now or datetime.utcnow()
        end_date = plan.period_end(now)
        return cls(
            user_id=user_id,
            plan_id=plan.id,
            status=SubscriptionStatus.TRIAL if plan.has_trial else SubscriptionStatus.ACTIVE,
            start_date=now,
            end_date=end_date,
            next_billing_date=end_date,
            trial_end_date=plan.trial_end(now),
            payment_gateway=GatewayKind(gateway),
            metadata={
                "transactionReference": transaction_reference,
                "gatewayResponse": gateway_response,
            },
        )

    @property
    def transaction_reference(self) -> Optional[str]:
        return self.metadata.get("transactionReference")

    @property
    def is_live(self) -> bool:
        return self.status in LIVE_STATUSES

    def is_active(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return self.status == SubscriptionStatus.ACTIVE and self.end_date > now

    def is_trial(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return (self.status == SubscriptionStatus.TRIAL
                and self.trial_end_date is not None and self.trial_end_date > now)

    def record_payment(self, transaction_id: Optional[str], gateway_response: Any = None) -> bool:
        """결제 확인 반영. trial이면 active로 승격하며 날짜는 바꾸지 않는다.

        이미 같은 거래가 반영된 active 구독이면 False (중복 webhook).
        """
        if (self.status == SubscriptionStatus.ACTIVE
                and transaction_id and self.metadata.get("transactionId") == transaction_id):
            return False
        metadata = dict(self.metadata)
        if transaction_id:
            metadata["transactionId"] = transaction_id
        if gateway_response is not None:
            metadata["gatewayResponse"] = gateway_response
        self.metadata = metadata
        if self.status == SubscriptionStatus.TRIAL:
            self.status = SubscriptionStatus.ACTIVE
        return True

    def renew(self, plan: PlanEntity, payment_details: Dict[str, Any],
              now: Optional[datetime] = None) -> None:
        """현재 시각 기준으로 한 주기 연장"""
        if self.status not in RENEWABLE_STATUSES:
            raise InvalidTransitionError("구독", self.status.value, SubscriptionStatus.ACTIVE.value)
        now = now or datetime.utcnow()
        end_date = plan.period_end(now)
        self.plan_id = plan.id
        self.status = SubscriptionStatus.ACTIVE
        self.start_date = now
        self.end_date = end_date
        self.next_billing_date = end_date
        self.metadata = {**self.metadata, **payment_details}

    def mark_past_due(self) -> None:
        if self.status not in (SubscriptionStatus.ACTIVE, SubscriptionStatus.PAST_DUE):
            raise InvalidTransitionError("구독", self.status.value, SubscriptionStatus.PAST_DUE.value)
        self.status = SubscriptionStatus.PAST_DUE

    def expire(self) -> None:
        if self.status in (SubscriptionStatus.CANCELLED, SubscriptionStatus.EXPIRED):
            raise InvalidTransitionError("구독", self.status.value, SubscriptionStatus.EXPIRED.value)
        self.status = SubscriptionStatus.EXPIRED

    def cancel(self, cancelled_by: Optional[int], reason: Optional[str] = None,
               now: Optional[datetime] = None) -> None:
        if self.status == SubscriptionStatus.CANCELLED:
            raise InvalidTransitionError("구독", self.status.value, SubscriptionStatus.CANCELLED.value)
        self.status = SubscriptionStatus.CANCELLED
        self.cancelled_at = now or datetime.utcnow()
        self.cancelled_by = cancelled_by
        self.cancellation_reason = reason
        self.auto_renew = False

    def restart(self, plan: PlanEntity, gateway: GatewayKind, transaction_reference: str,
                gateway_response: Any = None, now: Optional[datetime] = None) -> None:
        """종료된 구독 행을 새 구독으로 재사용 (사용자당 한 행 유지)"""
        if self.is_live:
            raise InvalidTransitionError("구독", self.status.value, "restart")
        fresh = SubscriptionEntity.start(self.user_id, plan, gateway, transaction_reference,
                                         gateway_response, now)
        self.plan_id = fresh.plan_id
        self.status = fresh.status
        self.start_date = fresh.start_date
        self.end_date = fresh.end_date
        self.next_billing_date = fresh.next_billing_date
        self.trial_end_date = fresh.trial_end_date
        self.auto_renew = True
        self.payment_gateway = fresh.payment_gateway
        self.metadata = fresh.metadata
        self.cancelled_at = None
        self.cancelled_by = None
        self.cancellation_reason = None
