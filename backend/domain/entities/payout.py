"""제휴 지급 도메인 엔티티"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Optional, Dict, Any, List

from domain.enums import PayoutStatus, PayoutMethod, GatewayKind, GATEWAY_PAYOUT_METHODS
from domain.exceptions import InvalidTransitionError

# 현재 상태 -> 허용되는 다음 상태. completed, cancelled는 종료 상태.
ALLOWED_TRANSITIONS = {
    PayoutStatus.PENDING: {PayoutStatus.PROCESSING, PayoutStatus.COMPLETED,
                           PayoutStatus.FAILED, PayoutStatus.CANCELLED},
    PayoutStatus.PROCESSING: {PayoutStatus.COMPLETED, PayoutStatus.FAILED, PayoutStatus.CANCELLED},
    PayoutStatus.FAILED: {PayoutStatus.PROCESSING},
    PayoutStatus.COMPLETED: set(),
    PayoutStatus.CANCELLED: set(),
}


@dataclass
class PayoutEntity:
    affiliate_id: int
    store_id: int
    amount: Decimal
    payment_method: PayoutMethod
    currency: str = "USD"
    commission_ids: List[int] = field(default_factory=list)
    payment_details: Dict[str, Any] = field(default_factory=dict)
    status: PayoutStatus = PayoutStatus.PENDING
    transaction_id: Optional[str] = None
    transaction_reference: Optional[str] = None
    error: Optional[Dict[str, Any]] = None
    processed_at: Optional[datetime] = None
    processed_by: Optional[int] = None
    notes: Optional[str] = None
    id: Optional[int] = None

    @property
    def gateway(self) -> Optional[GatewayKind]:
        """게이트웨이 이체 대상이면 해당 게이트웨이, 아니면 None"""
        return GATEWAY_PAYOUT_METHODS.get(PayoutMethod(self.payment_method))

    def _transition(self, target: PayoutStatus) -> None:
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError("지급", self.status.value, target.value)
        self.status = target

    def mark_as_processing(self, processed_by: Optional[int], now: Optional[datetime] = None) -> None:
        self._transition(PayoutStatus.PROCESSING)
        self.processed_at = now or datetime.utcnow()
        self.processed_by = processed_by
        self.error = None

    def mark_as_completed(self, transaction_id: Optional[str], transaction_reference: Optional[str],
                          gateway_response: Any = None) -> bool:
        """이체 완료 반영. 같은 거래로 이미 완료된 경우 False (중복 webhook)."""
        if self.status == PayoutStatus.COMPLETED and self.transaction_id == transaction_id:
            return False
        self._transition(PayoutStatus.COMPLETED)
        self.transaction_id = transaction_id
        if transaction_reference:
            self.transaction_reference = transaction_reference
        if gateway_response is not None:
            self.payment_details = {**self.payment_details, "gatewayResponse": gateway_response}
        return True

    def mark_as_failed(self, message: Optional[str] = None, code: Optional[str] = None,
                       details: Any = None) -> None:
        self._transition(PayoutStatus.FAILED)
        self.error = {
            "message": message or "Payment processing failed",
            "code": code or "UNKNOWN",
            "details": details,
        }

    def cancel(self, reason: Optional[str] = None) -> None:
        self._transition(PayoutStatus.CANCELLED)
        if reason:
            self.notes = reason
