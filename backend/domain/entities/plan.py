"""구독 플랜 도메인 엔티티"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Dict, Any

from dateutil.relativedelta import relativedelta

from domain.enums import BillingCycle


def add_billing_cycle(start: datetime, cycle: BillingCycle) -> datetime:
    """청구 주기 한 단위 뒤의 시각 (1월 31일 + 1개월 = 2월 말일)"""
    if BillingCycle(cycle) == BillingCycle.YEARLY:
        return start + relativedelta(years=1)
    return start + relativedelta(months=1)


@dataclass
class PlanEntity:
    id: int
    name: str
    price: Decimal
    currency: str = "USD"
    billing_cycle: BillingCycle = BillingCycle.MONTHLY
    trial_period: int = 0  # 일
    features: Dict[str, Any] = field(default_factory=dict)
    is_active: bool = True
    description: Optional[str] = None

    @property
    def has_trial(self) -> bool:
        return self.trial_period > 0

    def period_end(self, start: datetime) -> datetime:
        return add_billing_cycle(start, self.billing_cycle)

    def trial_end(self, start: datetime) -> Optional[datetime]:
        if not self.has_trial:
            return None
        return start + timedelta(days=self.trial_period)

    def yearly_price(self) -> Decimal:
        """연간 환산 가격 (월간 플랜은 20% 할인)"""
        if self.billing_cycle == BillingCycle.YEARLY:
            return Decimal(self.price)
        return (Decimal(self.price) * 12 * Decimal("0.8")).quantize(Decimal("1"))
