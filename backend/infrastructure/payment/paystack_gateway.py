"""Paystack API 어댑터"""
import hashlib
from decimal import Decimal
from typing import Dict, Any, Optional, Union

from loguru import logger

from config import settings
from application.ports.payment_gateway import (
    PaymentInitResult, PaymentVerification, TransferDestination, TransferResult, WebhookResult,
)
from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind, PaymentStatus, WebhookEventType
from domain.exceptions import GatewayError
from infrastructure.payment.base import BaseGateway

_COMPLETED = ("success",)
_FAILED = ("failed", "abandoned", "reversed")


class PaystackGateway(BaseGateway):
    kind = GatewayKind.PAYSTACK
    SIGNATURE_DIGEST = hashlib.sha512
    WEBHOOK_SECRET_SETTING = "PAYSTACK_WEBHOOK_SECRET"
    REFERENCE_PREFIX = "PAY"

    def base_url(self, gateway: GatewayConfigEntity) -> str:
        return gateway.config.get("api_url") or settings.PAYSTACK_API_URL

    async def initialize_payment(self, amount: Union[Decimal, int, float, str], email: str,
                                 currency: Optional[str] = None, reference: Optional[str] = None,
                                 callback_url: Optional[str] = None,
                                 metadata: Optional[Dict[str, Any]] = None) -> PaymentInitResult:
        payload = {
            "amount": self.to_minor(amount),  # 코보 단위
            "email": email,
            "reference": reference or self.generate_reference(),
            "currency": currency or self.DEFAULT_CURRENCY,
            "callback_url": callback_url,
            "metadata": metadata or {},
        }
        body = await self._request("initialize_payment", "POST", "/transaction/initialize", json=payload)
        if not body.get("status"):
            logger.error(f"[paystack] initialize_payment 실패: {body.get('message')}")
            raise GatewayError(self.kind.value, "initialize_payment",
                               body.get("message") or "Failed to initialize payment", body)
        data = body.get("data") or {}
        return PaymentInitResult(
            success=True,
            payment_link=data.get("authorization_url"),
            transaction_reference=data.get("reference") or payload["reference"],
            access_code=data.get("access_code"),
            raw_response=body,
        )

    async def verify_payment(self, transaction_id_or_ref: str) -> PaymentVerification:
        body = await self._request("verify_payment", "GET", f"/transaction/verify/{transaction_id_or_ref}")
        data = body.get("data")
        if not body.get("status") or not isinstance(data, dict):
            return PaymentVerification(success=False,
                                       message=body.get("message") or "Payment verification failed",
                                       raw_response=body)
        return PaymentVerification(
            success=True,
            status=self.map_status(data.get("status"), _COMPLETED, _FAILED),
            amount=self.from_minor(data.get("amount")),
            currency=data.get("currency"),
            transaction_id=self._str_or_none(data.get("id")),
            transaction_reference=data.get("reference"),
            customer=data.get("customer"),
            raw_response=body,
        )

    async def initiate_transfer(self, destination: TransferDestination,
                                amount: Union[Decimal, int, float, str],
                                currency: Optional[str] = None, narration: Optional[str] = None,
                                reference: Optional[str] = None) -> TransferResult:
        # 수취인 코드가 없으면 계좌번호로 대체
        payload = {
            "source": "balance",
            "amount": self.to_minor(amount),
            "recipient": destination.recipient_code or destination.account_number,
            "reason": narration or "Affiliate commission payout",
            "reference": reference or self.generate_reference("TRF"),
            "currency": currency or self.DEFAULT_CURRENCY,
        }
        body = await self._request("initiate_transfer", "POST", "/transfer", json=payload)
        if not body.get("status"):
            logger.error(f"[paystack] initiate_transfer 실패: {body.get('message')}")
            raise GatewayError(self.kind.value, "initiate_transfer",
                               body.get("message") or "Failed to initiate transfer", body)
        data = body.get("data") or {}
        return TransferResult(
            success=True,
            transfer_id=self._str_or_none(data.get("id")) or data.get("transfer_code"),
            reference=data.get("reference") or payload["reference"],
            status=data.get("status"),
            raw_response=body,
        )

    async def create_transfer_recipient(self, name: str, account_number: str, bank_code: str,
                                        recipient_type: str = "nuban", email: Optional[str] = None,
                                        currency: Optional[str] = None) -> Dict[str, Any]:
        """이체 수취인 등록 (nuban, mobile_money, basa)"""
        payload = {
            "type": recipient_type,
            "name": name,
            "account_number": account_number,
            "bank_code": bank_code,
            "email": email,
            "currency": currency or self.DEFAULT_CURRENCY,
        }
        body = await self._request("create_transfer_recipient", "POST", "/transferrecipient", json=payload)
        if not body.get("status"):
            raise GatewayError(self.kind.value, "create_transfer_recipient",
                               body.get("message") or "Failed to create transfer recipient", body)
        data = body.get("data") or {}
        return {
            "success": True,
            "recipient_code": data.get("recipient_code"),
            "recipient_id": self._str_or_none(data.get("id")),
            "raw_response": body,
        }

    def normalize_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        event = payload.get("event")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            data = {}
        common = dict(
            event=event,
            transaction_reference=data.get("reference"),
            currency=data.get("currency"),
            context=self._metadata_type(data.get("metadata")),
            raw_response=data,
        )

        if event == "charge.success":
            return WebhookResult(type=WebhookEventType.PAYMENT, status=PaymentStatus.COMPLETED,
                                 transaction_id=self._str_or_none(data.get("id")),
                                 amount=self.from_minor(data.get("amount")),
                                 customer=data.get("customer"), **common)
        if event == "transfer.success":
            return WebhookResult(type=WebhookEventType.TRANSFER, status=PaymentStatus.COMPLETED,
                                 transaction_id=self._str_or_none(data.get("id")) or data.get("transfer_code"),
                                 amount=self.from_minor(data.get("amount")), **common)
        if event in ("charge.failed", "transfer.failed", "transfer.reversed"):
            return WebhookResult(
                type=WebhookEventType.PAYMENT if event.startswith("charge") else WebhookEventType.TRANSFER,
                status=PaymentStatus.FAILED,
                transaction_id=self._str_or_none(data.get("id")) or data.get("transfer_code"),
                amount=self.from_minor(data.get("amount")), **common)

        return WebhookResult(type=WebhookEventType.UNKNOWN, **common)
