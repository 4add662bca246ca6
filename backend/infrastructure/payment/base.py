"""게이트웨이 어댑터 공통 기반 클래스

설정/비밀키/HTTP 클라이언트를 처음 사용할 때 조회해 캐시하고,
CredentialStore가 무효화되거나 캐시 TTL이 지나면 다시 조회한다.
동시에 처음 호출되면 초기화가 중복될 수 있지만 결과는 같으므로 잠그지 않는다.
"""
import hashlib
import hmac
import json
import secrets
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any, Union

import httpx
from loguru import logger

from config import settings
from application.ports.payment_gateway import PaymentGatewayPort
from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind, PaymentStatus
from domain.exceptions import DecryptionError, GatewayNotConfiguredError, ProviderTransportError


def canonical_json(payload: Any) -> str:
    """JSON.stringify와 같은 직렬화 (공백 없음, 키 순서 유지)"""
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False)


class BaseGateway(PaymentGatewayPort):
    kind: GatewayKind
    MINOR_UNIT_FACTOR = 100
    SIGNATURE_DIGEST = hashlib.sha512
    WEBHOOK_SECRET_SETTING = ""
    REFERENCE_PREFIX = "PAY"
    DEFAULT_CURRENCY = "NGN"

    def __init__(self, credential_store, transport: Optional[httpx.AsyncBaseTransport] = None,
                 timeout: Optional[float] = None):
        self._credentials = credential_store
        self._transport = transport
        self._timeout = timeout or settings.GATEWAY_TIMEOUT
        self.gateway: Optional[GatewayConfigEntity] = None
        self._secret_key: Optional[str] = None
        self._client: Optional[httpx.AsyncClient] = None
        self._generation: Optional[int] = None
        self._resolved_at = 0.0

    # ==================== 초기화 ====================

    def base_url(self, gateway: GatewayConfigEntity) -> str:
        raise NotImplementedError

    def _headers(self, secret_key: str) -> Dict[str, str]:
        return {"Authorization": f"Bearer {secret_key}", "Content-Type": "application/json"}

    @property
    def is_initialized(self) -> bool:
        return self._client is not None

    @property
    def is_stale(self) -> bool:
        """설정을 다시 조회해야 하는지 (미초기화, 저장소 무효화, 캐시 TTL 경과)"""
        return self._client is None or self._credentials.is_stale(self._generation, self._resolved_at)

    def _same_connection(self, gateway: GatewayConfigEntity) -> bool:
        current = self.gateway
        return (current is not None and current.secret_key == gateway.secret_key
                and current.environment == gateway.environment and current.config == gateway.config)

    async def initialize(self) -> None:
        """활성 설정과 복호화된 비밀키로 HTTP 클라이언트 구성

        비밀키/환경이 그대로면 기존 클라이언트를 유지하고 설정(webhook secret 등)만 교체한다.
        """
        generation = self._credentials.generation
        gateway = await self._credentials.get_active_config(self.kind)
        if gateway is None:
            await self.aclose()
            logger.error(f"[{self.kind.value}] initialize 실패: 활성 게이트웨이 설정 없음")
            raise GatewayNotConfiguredError(self.kind.value)

        if self._client is not None and self._same_connection(gateway):
            self.gateway = gateway
        else:
            try:
                secret_key = self._credentials.decrypt_secret(gateway)
            except DecryptionError:
                await self.aclose()
                raise
            client = httpx.AsyncClient(
                base_url=self.base_url(gateway),
                headers=self._headers(secret_key),
                timeout=self._timeout,
                transport=self._transport,
            )
            previous = self._client
            self.gateway, self._secret_key, self._client = gateway, secret_key, client
            if previous is not None:
                await previous.aclose()
            logger.debug(f"[{self.kind.value}] 게이트웨이 초기화 ({gateway.environment.value})")
        self._generation, self._resolved_at = generation, time.monotonic()

    async def _ensure_initialized(self) -> None:
        if self.is_stale:
            await self.initialize()

    async def aclose(self) -> None:
        """클라이언트를 닫고 캐시된 설정/비밀키를 버린다"""
        if self._client is not None:
            await self._client.aclose()
        self.gateway, self._secret_key, self._client = None, None, None

    # ==================== HTTP ====================

    async def _request(self, operation: str, method: str, url: str, **kwargs) -> Dict[str, Any]:
        """게이트웨이 호출. 4xx라도 JSON 본문이 있으면 업무 응답으로 돌려준다."""
        await self._ensure_initialized()
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"[{self.kind.value}] {operation} 타임아웃: {url}")
            raise ProviderTransportError(self.kind.value, operation, "timeout", retryable=True) from e
        except httpx.RequestError as e:
            logger.error(f"[{self.kind.value}] {operation} 요청 실패: {e}")
            raise ProviderTransportError(self.kind.value, operation, str(e), retryable=True) from e

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code >= 500 or (response.is_error and not isinstance(body, dict)):
            logger.error(f"[{self.kind.value}] {operation} HTTP {response.status_code}: {response.text[:500]}")
            raise ProviderTransportError(self.kind.value, operation,
                                         f"HTTP {response.status_code}",
                                         status_code=response.status_code,
                                         retryable=response.status_code >= 500)
        if not isinstance(body, dict):
            logger.error(f"[{self.kind.value}] {operation} 응답 형식 오류: {response.text[:500]}")
            raise ProviderTransportError(self.kind.value, operation, "invalid response body",
                                         status_code=response.status_code)
        if response.is_error:
            logger.warning(f"[{self.kind.value}] {operation} HTTP {response.status_code}: {body.get('message')}")
        return body

    # ==================== 금액/참조번호 ====================

    def to_minor(self, amount: Union[Decimal, int, float, str]) -> int:
        value = Decimal(str(amount)) * self.MINOR_UNIT_FACTOR
        return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))

    def from_minor(self, amount: Any) -> Optional[Decimal]:
        if amount is None:
            return None
        return (Decimal(str(amount)) / self.MINOR_UNIT_FACTOR).quantize(Decimal("0.01"))

    def generate_reference(self, prefix: Optional[str] = None) -> str:
        return f"{prefix or self.REFERENCE_PREFIX}_{int(time.time() * 1000)}_{secrets.token_hex(3)}"

    @staticmethod
    def map_status(value: Any, completed: tuple, failed: tuple) -> PaymentStatus:
        normalized = str(value or "").lower()
        if normalized in completed:
            return PaymentStatus.COMPLETED
        if normalized in failed:
            return PaymentStatus.FAILED
        return PaymentStatus.PENDING

    @staticmethod
    def _str_or_none(value: Any) -> Optional[str]:
        return None if value is None or value == "" else str(value)

    # ==================== Webhook ====================

    def webhook_secret(self) -> Optional[str]:
        if self.gateway is not None and self.gateway.webhook_secret:
            return self.gateway.webhook_secret
        return getattr(settings, self.WEBHOOK_SECRET_SETTING, "") or None

    def sign(self, payload: Union[Dict[str, Any], bytes, str], secret: str) -> str:
        if isinstance(payload, bytes):
            content = payload
        elif isinstance(payload, str):
            content = payload.encode("utf-8")
        else:
            content = canonical_json(payload).encode("utf-8")
        return hmac.new(secret.encode(), content, self.SIGNATURE_DIGEST).hexdigest()

    def verify_webhook_signature(self, payload: Union[Dict[str, Any], bytes, str],
                                 signature: Optional[str]) -> bool:
        """서명 검증. 설정이 없거나 어떤 오류가 나도 False (예외 없음)"""
        secret = self.webhook_secret()
        if not secret or not signature:
            logger.warning(f"[{self.kind.value}] webhook 서명 검증 불가: "
                           f"{'secret 미설정' if not secret else '서명 헤더 없음'}")
            return False
        try:
            expected = self.sign(payload, secret)
            return hmac.compare_digest(expected, signature.strip().lower())
        except (TypeError, ValueError) as e:
            logger.warning(f"[{self.kind.value}] webhook 서명 검증 오류: {e}")
            return False

    @staticmethod
    def _metadata_type(*candidates: Any) -> Optional[str]:
        """결제 메타데이터에서 type 추출 (subscription, renewal, payout)"""
        for candidate in candidates:
            if isinstance(candidate, str):
                try:
                    candidate = json.loads(candidate)
                except ValueError:
                    continue
            if isinstance(candidate, dict) and candidate.get("type"):
                return str(candidate["type"])
        return None
