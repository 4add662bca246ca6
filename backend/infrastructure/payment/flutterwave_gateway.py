"""Flutterwave API 어댑터"""
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

_COMPLETED = ("successful", "success")
_FAILED = ("failed", "cancelled")


class FlutterwaveGateway(BaseGateway):
    kind = GatewayKind.FLUTTERWAVE
    SIGNATURE_DIGEST = hashlib.sha512
    WEBHOOK_SECRET_SETTING = "FLUTTERWAVE_WEBHOOK_SECRET"
    REFERENCE_PREFIX = "FLW"

    def base_url(self, gateway: GatewayConfigEntity) -> str:
        return gateway.config.get("api_url") or settings.FLUTTERWAVE_API_URL

    async def initialize_payment(self, amount: Union[Decimal, int, float, str], email: str,
                                 currency: Optional[str] = None, reference: Optional[str] = None,
                                 callback_url: Optional[str] = None,
                                 metadata: Optional[Dict[str, Any]] = None) -> PaymentInitResult:
        metadata = metadata or {}
        tx_ref = reference or self.generate_reference()
        payload = {
            "tx_ref": tx_ref,
            "amount": self.to_minor(amount),
            "currency": currency or self.DEFAULT_CURRENCY,
            "redirect_url": callback_url,
            "payment_options": "card,banktransfer,ussd",
            "customer": {
                "email": email,
                "phonenumber": metadata.get("phone"),
                "name": metadata.get("name"),
            },
            "customizations": {
                "title": "Affiliate Network Payment",
                "description": "Subscription Payment",
                "logo": metadata.get("logo", ""),
            },
            "meta": metadata,
        }
        body = await self._request("initialize_payment", "POST", "/payments", json=payload)
        if body.get("status") != "success":
            logger.error(f"[flutterwave] initialize_payment 실패: {body.get('message')}")
            raise GatewayError(self.kind.value, "initialize_payment",
                               body.get("message") or "Failed to initialize payment", body)
        data = body.get("data") or {}
        return PaymentInitResult(success=True, payment_link=data.get("link"),
                                 transaction_reference=tx_ref, raw_response=body)

    async def verify_payment(self, transaction_id_or_ref: str) -> PaymentVerification:
        # 숫자는 거래 ID, 그 외는 tx_ref로 조회
        value = str(transaction_id_or_ref)
        if value.isdigit():
            body = await self._request("verify_payment", "GET", f"/transactions/{value}/verify")
        else:
            body = await self._request("verify_payment", "GET", "/transactions/verify_by_reference",
                                       params={"tx_ref": value})
        data = body.get("data")
        if body.get("status") != "success" or not isinstance(data, dict):
            return PaymentVerification(success=False,
                                       message=body.get("message") or "Payment verification failed",
                                       raw_response=body)
        return PaymentVerification(
            success=True,
            status=self.map_status(data.get("status"), _COMPLETED, _FAILED),
            amount=self.from_minor(data.get("amount")),
            currency=data.get("currency"),
            transaction_id=self._str_or_none(data.get("id")),
            transaction_reference=data.get("tx_ref"),
            customer=data.get("customer"),
            raw_response=body,
        )

    async def initiate_transfer(self, destination: TransferDestination,
                                amount: Union[Decimal, int, float, str],
                                currency: Optional[str] = None, narration: Optional[str] = None,
                                reference: Optional[str] = None) -> TransferResult:
        payload = {
            "account_bank": destination.bank_code,
            "account_number": destination.account_number,
            "amount": self.to_minor(amount),
            "narration": narration or "Affiliate commission payout",
            "currency": currency or self.DEFAULT_CURRENCY,
            "reference": reference or self.generate_reference("TRF"),
            "beneficiary_name": destination.account_name,
        }
        if settings.FLUTTERWAVE_TRANSFER_WEBHOOK_URL:
            payload["callback_url"] = settings.FLUTTERWAVE_TRANSFER_WEBHOOK_URL
        body = await self._request("initiate_transfer", "POST", "/transfers", json=payload)
        if body.get("status") != "success":
            logger.error(f"[flutterwave] initiate_transfer 실패: {body.get('message')}")
            raise GatewayError(self.kind.value, "initiate_transfer",
                               body.get("message") or "Failed to initiate transfer", body)
        data = body.get("data") or {}
        return TransferResult(
            success=True,
            transfer_id=self._str_or_none(data.get("id")),
            reference=data.get("reference") or payload["reference"],
            status=data.get("status"),
            raw_response=body,
        )

    def normalize_webhook(self, payload: Dict[str, Any]) -> WebhookResult:
        event = payload.get("event")
        data = payload.get("data") or {}
        if not isinstance(data, dict):
            data = {}
        context = self._metadata_type(data.get("meta"), payload.get("meta_data"))

        if event == "charge.completed":
            return WebhookResult(
                type=WebhookEventType.PAYMENT, event=event,
                status=PaymentStatus.COMPLETED if str(data.get("status")).lower() == "successful"
                else PaymentStatus.FAILED,
                transaction_id=self._str_or_none(data.get("id")),
                transaction_reference=data.get("tx_ref"),
                amount=self.from_minor(data.get("amount")),
                currency=data.get("currency"),
                context=context,
                customer=data.get("customer"),
                raw_response=data,
            )
        if event == "transfer.completed":
            return WebhookResult(
                type=WebhookEventType.TRANSFER, event=event,
                status=PaymentStatus.COMPLETED if str(data.get("status")).upper() == "SUCCESSFUL"
                else PaymentStatus.FAILED,
                transaction_id=self._str_or_none(data.get("id")),
                transaction_reference=data.get("reference"),
                amount=self.from_minor(data.get("amount")),
                currency=data.get("currency"),
                context=context,
                raw_response=data,
            )

        return WebhookResult(type=WebhookEventType.UNKNOWN, event=event, context=context, raw_response=data)
