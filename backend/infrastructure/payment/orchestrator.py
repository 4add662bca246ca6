"""결제 오케스트레이터

호출자는 게이트웨이 종류만 넘기고(생략 시 기본 게이트웨이) 공통 포트로 결제를 처리한다.
실패는 작업명과 게이트웨이 종류를 로그로 남긴 뒤 그대로 전파한다.
"""
from decimal import Decimal
from typing import Optional, Dict, Any, List, Union

import httpx
from loguru import logger

from application.ports.payment_gateway import (
    PaymentGatewayPort, PaymentInitResult, PaymentVerification, TransferDestination,
    TransferResult, WebhookResult,
)
from domain.exceptions import DecryptionError, DomainError, GatewayNotConfiguredError, NoDefaultGatewayError
from infrastructure.payment.credential_store import CredentialStore
from infrastructure.payment.registry import GatewayRegistry

Amount = Union[Decimal, int, float, str]


class PaymentOrchestrator:
    def __init__(self, credential_store: Optional[CredentialStore] = None,
                 registry: Optional[GatewayRegistry] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.credentials = credential_store or CredentialStore()
        self.registry = registry or GatewayRegistry(self.credentials, transport=transport)

    async def get_gateway(self, kind=None) -> PaymentGatewayPort:
        """지정한 게이트웨이, 없으면 기본 게이트웨이 어댑터"""
        if kind is None:
            default = await self.credentials.get_default_config()
            if default is None:
                logger.error("get_gateway 실패: 기본 게이트웨이 없음")
                raise NoDefaultGatewayError()
            kind = default.kind
        return self.registry.get(kind)

    def _log_failure(self, operation: str, kind, error: Exception) -> None:
        label = getattr(kind, "value", kind) or "default"
        logger.error(f"[{label}] {operation} 실패: {error}")

    # ==================== 결제 ====================

    async def initialize_payment(self, amount: Amount, email: str, currency: Optional[str] = None,
                                 reference: Optional[str] = None, callback_url: Optional[str] = None,
                                 metadata: Optional[Dict[str, Any]] = None,
                                 gateway=None) -> PaymentInitResult:
        try:
            adapter = await self.get_gateway(gateway)
            return await adapter.initialize_payment(amount, email, currency=currency, reference=reference,
                                                    callback_url=callback_url, metadata=metadata)
        except DomainError as e:
            self._log_failure("initialize_payment", gateway, e)
            raise

    async def verify_payment(self, transaction_id_or_ref: str, gateway=None) -> PaymentVerification:
        try:
            adapter = await self.get_gateway(gateway)
            return await adapter.verify_payment(transaction_id_or_ref)
        except DomainError as e:
            self._log_failure("verify_payment", gateway, e)
            raise

    async def initiate_transfer(self, destination: TransferDestination, amount: Amount,
                                currency: Optional[str] = None, narration: Optional[str] = None,
                                reference: Optional[str] = None, gateway=None) -> TransferResult:
        try:
            adapter = await self.get_gateway(gateway)
            return await adapter.initiate_transfer(destination, amount, currency=currency,
                                                   narration=narration, reference=reference)
        except DomainError as e:
            self._log_failure("initiate_transfer", gateway, e)
            raise

    # ==================== Webhook ====================

    async def prepare_webhook(self, kind) -> PaymentGatewayPort:
        """저장된 webhook secret을 쓰도록 어댑터 (재)초기화. 설정이 없으면 환경 변수 secret으로 검증한다."""
        adapter = self.registry.get(kind)
        if adapter.is_stale:
            try:
                await adapter.initialize()
            except (GatewayNotConfiguredError, DecryptionError) as e:
                logger.warning(f"[{adapter.kind.value}] webhook: 저장된 설정 없이 검증 ({e})")
        return adapter

    async def verify_webhook_signature(self, kind, payload: Union[Dict[str, Any], bytes, str],
                                       signature: Optional[str]) -> bool:
        adapter = await self.prepare_webhook(kind)
        return adapter.verify_webhook_signature(payload, signature)

    async def normalize_webhook(self, kind, payload: Dict[str, Any]) -> WebhookResult:
        adapter = self.registry.get(kind)
        return adapter.normalize_webhook(payload)

    # ==================== 조회 ====================

    async def available_gateways(self) -> List[Dict[str, Any]]:
        """활성 게이트웨이 목록 (비밀키 제외)"""
        configs = await self.credentials.list_active()
        return [
            {
                "type": c.kind.value,
                "name": c.name,
                "is_default": c.is_default,
                "environment": c.environment.value,
            }
            for c in configs
        ]

    async def aclose(self) -> None:
        await self.registry.aclose()
