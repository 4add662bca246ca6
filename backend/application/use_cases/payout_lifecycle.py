"""제휴 지급 수명주기 유스케이스

pending -> processing -> completed / failed, pending|processing -> cancelled, failed -> processing(재시도).
completed는 종료 상태이며 잘못된 전이는 InvalidTransitionError.
"""
import time
from dataclasses import dataclass
from typing import Optional, Any

from loguru import logger

from application.ports.payment_gateway import TransferDestination
from application.ports.payout_repository import PayoutRepository
from domain.entities.payout import PayoutEntity
from domain.enums import PayoutStatus
from domain.exceptions import GatewayError, InvalidTransitionError, ProviderTransportError

# 게이트웨이가 이체 요청 즉시 완료를 알려주는 상태값
IMMEDIATE_SUCCESS_STATUSES = ("success", "successful", "completed")


@dataclass
class ProcessPayoutInput:
    payout_id: int
    processed_by: Optional[int] = None


@dataclass
class CancelPayoutInput:
    payout_id: int
    reason: Optional[str] = None


@dataclass
class PayoutOutput:
    success: bool
    message: Optional[str] = None
    payout: Optional[PayoutEntity] = None


def _destination(payout: PayoutEntity) -> TransferDestination:
    details = payout.payment_details
    return TransferDestination(
        account_number=details.get("accountNumber"),
        account_name=details.get("accountName"),
        bank_code=details.get("bankCode") or details.get("bankName"),
        recipient_code=details.get("recipientCode"),
        email=details.get("recipientEmail"),
    )


class PayoutLifecycle:
    def __init__(self, payout_repo: PayoutRepository, payments):
        self._payouts = payout_repo
        self._payments = payments

    async def process(self, input: ProcessPayoutInput) -> PayoutOutput:
        """게이트웨이 이체 요청. 즉시 완료가 아니면 processing으로 두고 webhook을 기다린다."""
        payout = await self._payouts.get_by_id(input.payout_id)
        if payout is None:
            return PayoutOutput(success=False, message="지급 요청을 찾을 수 없습니다.")
        gateway = payout.gateway
        if gateway is None:
            return PayoutOutput(success=False, payout=payout,
                                message=f"자동 이체를 지원하지 않는 지급 수단입니다: {payout.payment_method.value}")
        try:
            payout.mark_as_processing(input.processed_by)
        except InvalidTransitionError as e:
            return PayoutOutput(success=False, message=str(e), payout=payout)

        reference = f"PAYOUT_{payout.id}_{int(time.time() * 1000)}"
        payout.transaction_reference = reference
        payout = await self._payouts.save(payout)

        try:
            transfer = await self._payments.initiate_transfer(
                _destination(payout), payout.amount, currency=payout.currency,
                narration=f"Affiliate commission payout - {payout.id}",
                reference=reference, gateway=gateway,
            )
        except GatewayError as e:
            payout.mark_as_failed(str(e), "TRANSFER_FAILED", e.response)
            await self._payouts.save(payout)
            return PayoutOutput(success=False, message=str(e), payout=payout)
        except ProviderTransportError as e:
            payout.mark_as_failed(str(e), "TRANSPORT_ERROR",
                                  {"retryable": e.retryable, "status_code": e.status_code})
            await self._payouts.save(payout)
            return PayoutOutput(success=False, message=str(e), payout=payout)

        if transfer.reference:
            payout.transaction_reference = transfer.reference
        if str(transfer.status or "").lower() in IMMEDIATE_SUCCESS_STATUSES:
            payout.mark_as_completed(transfer.transfer_id, transfer.reference, transfer.raw_response)
            message = "지급이 완료되었습니다."
        else:
            payout.transaction_id = transfer.transfer_id
            payout.payment_details = {**payout.payment_details, "gatewayResponse": transfer.raw_response}
            message = "이체 요청이 접수되었습니다."
        payout = await self._payouts.save(payout)
        logger.info(f"지급 처리: payout={payout.id} via {gateway.value} "
                    f"status={payout.status.value} ref={payout.transaction_reference}")
        return PayoutOutput(success=True, message=message, payout=payout)

    async def cancel(self, input: CancelPayoutInput) -> PayoutOutput:
        """대기 중인 지급만 취소 가능"""
        payout = await self._payouts.get_by_id(input.payout_id)
        if payout is None:
            return PayoutOutput(success=False, message="지급 요청을 찾을 수 없습니다.")
        if payout.status != PayoutStatus.PENDING:
            return PayoutOutput(success=False, payout=payout,
                                message=f"대기 중인 지급만 취소할 수 있습니다 (현재: {payout.status.value}).")
        payout.cancel(input.reason)
        payout = await self._payouts.save(payout)
        logger.info(f"지급 취소: payout={payout.id}")
        return PayoutOutput(success=True, message="지급이 취소되었습니다.", payout=payout)

    # ==================== webhook 반영 ====================

    async def mark_completed_by_reference(self, reference: str, transaction_id: Optional[str],
                                          gateway_response: Any = None) -> Optional[PayoutEntity]:
        payout = await self._payouts.get_by_transaction_reference(reference)
        if payout is None:
            return None
        if payout.mark_as_completed(transaction_id, reference, gateway_response):
            payout = await self._payouts.save(payout)
            logger.info(f"지급 완료: payout={payout.id} tx={transaction_id}")
        return payout

    async def mark_failed_by_reference(self, reference: str, message: Optional[str] = None,
                                       code: Optional[str] = None, details: Any = None) -> Optional[PayoutEntity]:
        payout = await self._payouts.get_by_transaction_reference(reference)
        if payout is None:
            return None
        if payout.status == PayoutStatus.FAILED:
            return payout
        payout.mark_as_failed(message, code, details)
        payout = await self._payouts.save(payout)
        logger.warning(f"지급 실패: payout={payout.id} - {message}")
        return payout
