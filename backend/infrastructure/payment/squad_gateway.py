"""Squad API 어댑터 (공식 SDK 없음, REST 직접 호출)"""
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

_COMPLETED = ("success", "successful")
_FAILED = ("failed", "abandoned", "reversed")

_PAYMENT_SUCCESS_EVENTS = ("transaction.success", "charge_successful")


class SquadGateway(BaseGateway):
    kind = GatewayKind.SQUAD
    SIGNATURE_DIGEST = hashlib.sha256
    WEBHOOK_SECRET_SETTING = "SQUAD_WEBHOOK_SECRET"
    REFERENCE_PREFIX = "SQD"

    def base_url(self, gateway: GatewayConfigEntity) -> str:
        if gateway.config.get("api_url"):
            return gateway.config["api_url"]
        return settings.SQUAD_LIVE_URL if gateway.is_live else settings.SQUAD_SANDBOX_URL

    @staticmethod
    def _is_success(body: Dict[str, Any]) -> bool:
        # 문서상 "success", 실제 응답은 status=200 + success=true
        return body.get("success") is True or body.get("status") in ("success", 200)

    async def initialize_payment(self, amount: Union[Decimal, int, float, str], email: str,
                                 currency: Optional[str] = None, reference: Optional[str] = None,
                                 callback_url: Optional[str] = None,
                                 metadata: Optional[Dict[str, Any]] = None) -> PaymentInitResult:
        metadata = metadata or {}
        payload = {
            "amount": self.to_minor(amount),
            "email": email,
            "currency": currency or self.DEFAULT_CURRENCY,
            "initiate_type": "inline",
            "transaction_ref": reference or self.generate_reference(),
            "callback_url": callback_url,
            "customer_name": metadata.get("name") or email,
            "metadata": metadata,
        }
        body = await self._request("initialize_payment", "POST", "/transaction/initiate", json=payload)
        if not self._is_success(body):
            logger.error(f"[squad] initialize_payment 실패: {body.get('message')}")
            raise GatewayError(self.kind.value, "initialize_payment",
                               body.get("message") or "Failed to initialize payment", body)
        data = body.get("data") or {}
        return PaymentInitResult(
            success=True,
            payment_link=data.get("checkout_url"),
            transaction_reference=data.get("transaction_ref") or payload["transaction_ref"],
            access_code=data.get("checkout_id"),
            raw_response=body,
        )

    async def verify_payment(self, transaction_id_or_ref: str) -> PaymentVerification:
        body = await self._request("verify_payment", "GET", f"/transaction/verify/{transaction_id_or_ref}")
        data = body.get("data")
        if not self._is_success(body) or not isinstance(data, dict):
            return PaymentVerification(success=False,
                                       message=body.get("message") or "Payment verification failed",
                                       raw_response=body)
        amount = data.get("transaction_amount", data.get("amount"))
        return PaymentVerification(
            success=True,
            status=self.map_status(data.get("transaction_status"), _COMPLETED, _FAILED),
            amount=self.from_minor(amount),
            currency=data.get("transaction_currency_id") or data.get("currency"),
            transaction_id=self._str_or_none(data.get("transaction_id")),
            transaction_reference=data.get("transaction_ref"),
            customer={"email": data.get("customer_email") or data.get("email"),
                      "name": data.get("customer_name")},
            raw_response=body,
        )

    async def initiate_transfer(self, destination: TransferDestination,
                                amount: Union[Decimal, int, float, str],
                                currency: Optional[str] = None, narration: Optional[str] = None,
                                reference: Optional[str] = None) -> TransferResult:
        payload = {
            "account_number": destination.account_number,
            "account_name": destination.account_name,
            "bank_code": destination.bank_code,
            "amount": self.to_minor(amount),
            "currency": currency or self.DEFAULT_CURRENCY,
            "narration": narration or "Affiliate commission payout",
            "transaction_ref": reference or self.generate_reference("TRF"),
        }
        body = await self._request("initiate_transfer", "POST", "/payout/initiate", json=payload)
        if not self._is_success(body):
            logger.error(f"[squad] initiate_transfer 실패: {body.get('message')}")
            raise GatewayError(self.kind.value, "initiate_transfer",
                               body.get("message") or "Failed to initiate transfer", body)
        data = body.get("data") or {}
        return TransferResult(
            success=True,
            transfer_id=self._str_or_none(data.get("transfer_id")),
            reference=data.get("transaction_ref") or payload["transaction_ref"],
            status=data.get("status"),
            raw_response=body,
        )

    def normalize_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        event = payload.get("event") or payload.get("Event")
        data = payload.get("data") or payload.get("Body") or {}
        if not isinstance(data, dict):
            data = {}
        amount = data.get("amount", data.get("transaction_amount"))
        common = dict(
            event=event,
            transaction_reference=data.get("transaction_ref") or payload.get("TransactionRef"),
            currency=data.get("currency"),
            context=self._metadata_type(data.get("metadata"), data.get("meta")),
            raw_response=data,
        )

        if event in _PAYMENT_SUCCESS_EVENTS:
            return WebhookResult(type=WebhookEventType.PAYMENT, status=PaymentStatus.COMPLETED,
                                 transaction_id=self._str_or_none(data.get("transaction_id")),
                                 amount=self.from_minor(amount),
                                 customer={"email": data.get("customer_email") or data.get("email"),
                                           "name": data.get("customer_name")},
                                 **common)
        if event == "payout.success":
            return WebhookResult(type=WebhookEventType.TRANSFER, status=PaymentStatus.COMPLETED,
                                 transaction_id=self._str_or_none(data.get("transfer_id")),
                                 amount=self.from_minor(amount), **common)
        if event in ("transaction.failed", "payout.failed"):
            return WebhookResult(
                type=WebhookEventType.PAYMENT if event.startswith("transaction") else WebhookEventType.TRANSFER,
                status=PaymentStatus.FAILED,
                transaction_id=self._str_or_none(data.get("transaction_id"))
                or self._str_or_none(data.get("transfer_id")),
                amount=self.from_minor(amount), **common)

        return WebhookResult(type=WebhookEventType.UNKNOWN, **common)
