"""결제 게이트웨이 webhook 처리 유스케이스

서명 검증 -> 정규화 -> 중복 확인 -> 구독/지급 반영.
대응하는 레코드가 없어도 게이트웨이 재전송을 막기 위해 정상 처리로 응답한다.
"""
from dataclasses import dataclass
from typing import Optional, Dict, Any, Union

from loguru import logger

from application.ports.payment_gateway import WebhookResult
from application.ports.processed_webhook_repository import ProcessedWebhookRepository
from application.use_cases.payout_lifecycle import PayoutLifecycle
from application.use_cases.subscription_lifecycle import SubscriptionLifecycle
from domain.enums import PaymentStatus, WebhookEventType
from domain.exceptions import InvalidTransitionError, RecordNotFoundError, SignatureInvalidError

PAYOUT_CONTEXT = "payout"


def _dedup_key(result: WebhookResult) -> str:
    status = result.status.value if result.status else "none"
    return f"{result.event or result.type.value}:{status}"


@dataclass
class WebhookOutcome:
    success: bool
    message: str
    result: Optional[WebhookResult] = None
    applied: bool = False
    duplicate: bool = False


class WebhookDispatcher:
    def __init__(self, payments, processed_repo: ProcessedWebhookRepository,
                 subscriptions: SubscriptionLifecycle, payouts: PayoutLifecycle):
        self._payments = payments
        self._processed = processed_repo
        self._subscriptions = subscriptions
        self._payouts = payouts

    async def _verify(self, kind, payload: Dict[str, Any], signature: Optional[str],
                      raw_body: Optional[Union[bytes, str]]) -> bool:
        if raw_body and await self._payments.verify_webhook_signature(kind, raw_body, signature):
            return True
        return await self._payments.verify_webhook_signature(kind, payload, signature)

    async def handle(self, kind, payload: Dict[str, Any], signature: Optional[str],
                     raw_body: Optional[Union[bytes, str]] = None) -> WebhookOutcome:
        """UnsupportedGatewayError, SignatureInvalidError는 호출자(라우터)가 HTTP 상태로 변환"""
        adapter = await self._payments.prepare_webhook(kind)
        label = adapter.kind.value

        if not await self._verify(adapter.kind, payload, signature, raw_body):
            logger.warning(f"[{label}] webhook 서명 불일치")
            raise SignatureInvalidError(label)

        result = await self._payments.normalize_webhook(adapter.kind, payload)
        reference = result.transaction_reference
        # 이벤트명:정규화 상태 (Flutterwave charge.completed는 성공/실패 공통 이벤트명)
        event_key = _dedup_key(result)
        logger.info(f"[{label}] webhook 수신: event={result.event} type={result.type.value} "
                    f"status={result.status.value if result.status else None} ref={reference}")

        if result.type == WebhookEventType.UNKNOWN or not reference:
            return WebhookOutcome(success=True, message="Webhook ignored", result=result)

        if await self._processed.exists(label, reference, event_key):
            logger.info(f"[{label}] 이미 처리한 webhook: {event_key} {reference}")
            return WebhookOutcome(success=True, message="Webhook already processed",
                                  result=result, duplicate=True)

        try:
            applied = await self._apply(result)
        except RecordNotFoundError as e:
            # 대상 없음은 기록하지 않는다
            logger.warning(f"[{label}] webhook 대상 없음: {e}")
            return WebhookOutcome(success=True, message="Webhook processed", result=result)
        except InvalidTransitionError as e:
            logger.warning(f"[{label}] webhook 상태 전이 무시: {e}")
            applied = False

        await self._processed.record(label, reference, event_key)
        return WebhookOutcome(success=True, message="Webhook processed", result=result, applied=applied)

    async def _apply(self, result: WebhookResult) -> bool:
        reference = result.transaction_reference
        payout_context = result.type == WebhookEventType.TRANSFER or result.context == PAYOUT_CONTEXT

        if result.status == PaymentStatus.COMPLETED:
            if payout_context:
                payout = await self._payouts.mark_completed_by_reference(
                    reference, result.transaction_id, result.raw_response)
                if payout is None:
                    raise RecordNotFoundError("지급", reference)
                return True
            subscription = await self._subscriptions.record_payment_by_reference(
                reference, result.transaction_id, result.raw_response)
            if subscription is None:
                raise RecordNotFoundError("구독", reference)
            return True

        if result.status == PaymentStatus.FAILED:
            if payout_context:
                payout = await self._payouts.mark_failed_by_reference(
                    reference, "Transfer failed", "TRANSFER_FAILED", result.raw_response)
                if payout is None:
                    raise RecordNotFoundError("지급", reference)
                return True
            subscription = await self._subscriptions.mark_past_due_by_reference(reference)
            if subscription is None:
                raise RecordNotFoundError("구독", reference)
            return True

        return False
