"""
결제 오케스트레이터 테스트 (게이트웨이 선택, 위임, 어댑터 캐시)
"""
import hashlib
import hmac
import json
from contextlib import asynccontextmanager
from decimal import Decimal

import httpx
import pytest

from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind
from domain.exceptions import NoDefaultGatewayError, UnsupportedGatewayError, GatewayNotConfiguredError
from infrastructure.payment.credential_store import CredentialStore
from infrastructure.payment.orchestrator import PaymentOrchestrator
from infrastructure.payment.paystack_gateway import PaystackGateway
from infrastructure.payment.squad_gateway import SquadGateway
from infrastructure.persistence.repositories import SqlGatewayConfigRepository
from tests.conftest import TEST_SECRET_KEYS, TEST_WEBHOOK_SECRET


class TestPaymentOrchestrator:

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_default_gateway(self, orchestrator: PaymentOrchestrator, add_gateway) -> None:
        await add_gateway(GatewayKind.PAYSTACK)
        with pytest.raises(NoDefaultGatewayError):
            await orchestrator.get_gateway()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_default_gateway_and_cached_instances(self, orchestrator: PaymentOrchestrator,
                                                        add_gateway) -> None:
        await add_gateway(GatewayKind.SQUAD, is_default=True)

        adapter = await orchestrator.get_gateway()
        assert isinstance(adapter, SquadGateway)
        assert await orchestrator.get_gateway() is adapter
        assert await orchestrator.get_gateway("squad") is adapter
        assert isinstance(await orchestrator.get_gateway(GatewayKind.PAYSTACK), PaystackGateway)

    @pytest.mark.unit
    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["stripe", "", "PAYPAL"])
    async def test_unsupported_gateway(self, orchestrator: PaymentOrchestrator, kind: str) -> None:
        with pytest.raises(UnsupportedGatewayError):
            await orchestrator.get_gateway(kind)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_initialize_payment_routes_to_default(self, orchestrator: PaymentOrchestrator,
                                                        add_gateway, provider) -> None:
        await add_gateway(GatewayKind.PAYSTACK, is_default=True)
        provider.on("POST", "/transaction/initialize", json={"status": True, "data": {
            "authorization_url": "https://checkout.paystack.com/x", "reference": "REF_9"}})

        result = await orchestrator.initialize_payment(Decimal("20"), "payer@example.com", reference="REF_9")
        assert result.payment_link == "https://checkout.paystack.com/x"
        assert provider.requests[-1].url.host == "api.paystack.co"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_explicit_gateway_not_configured_propagates(self, orchestrator: PaymentOrchestrator) -> None:
        with pytest.raises(GatewayNotConfiguredError):
            await orchestrator.verify_payment("REF_1", gateway="flutterwave")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_available_gateways_hide_secrets(self, orchestrator: PaymentOrchestrator, add_gateway) -> None:
        await add_gateway(GatewayKind.PAYSTACK, is_default=True)
        await add_gateway(GatewayKind.FLUTTERWAVE)
        await add_gateway(GatewayKind.SQUAD, is_active=False)

        gateways = await orchestrator.available_gateways()
        assert [g["type"] for g in gateways] == ["paystack", "flutterwave"]
        assert gateways[0] == {"type": "paystack", "name": "paystack test", "is_default": True,
                               "environment": "test"}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_webhook_without_stored_config_uses_environment_secret(
            self, orchestrator: PaymentOrchestrator, monkeypatch) -> None:
        from config import settings
        monkeypatch.setattr(settings, "PAYSTACK_WEBHOOK_SECRET", "")

        assert await orchestrator.verify_webhook_signature("paystack", {"event": "x"}, "abc") is False
        result = await orchestrator.normalize_webhook("paystack", {"event": "x"})
        assert result.type.value == "unknown"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_aclose(self, orchestrator: PaymentOrchestrator, add_gateway) -> None:
        await add_gateway(GatewayKind.PAYSTACK)
        adapter = await orchestrator.get_gateway("paystack")
        await adapter.initialize()
        assert adapter.is_initialized

        await orchestrator.aclose()
        assert not adapter.is_initialized


def _signature(payload: dict, secret: str) -> str:
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return hmac.new(secret.encode(), raw, hashlib.sha512).hexdigest()


def _paystack_initialize_ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"status": True, "data": {
        "authorization_url": "https://checkout.paystack.com/x",
        "reference": json.loads(request.content)["reference"]}})


class TestCredentialRefresh:
    """저장된 설정이 바뀌면 어댑터가 다음 호출에서 새 설정을 쓴다"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rotated_webhook_secret(self, session, cipher, provider) -> None:
        @asynccontextmanager
        async def scope():
            yield SqlGatewayConfigRepository(session)

        store = CredentialStore(repository_scope=scope, cipher=cipher, cache_ttl=60)
        payments = PaymentOrchestrator(credential_store=store, transport=provider.transport)
        config = await store.save_config(GatewayConfigEntity(
            kind=GatewayKind.PAYSTACK, name="paystack", public_key="pk",
            secret_key=TEST_SECRET_KEYS[GatewayKind.PAYSTACK], webhook_secret=TEST_WEBHOOK_SECRET))
        payload = {"event": "charge.success", "data": {"reference": "SUB_1_1"}}
        assert await payments.verify_webhook_signature("paystack", payload,
                                                       _signature(payload, TEST_WEBHOOK_SECRET)) is True

        config.webhook_secret = "whsec_rotated"
        await store.save_config(config)

        assert await payments.verify_webhook_signature("paystack", payload,
                                                       _signature(payload, "whsec_rotated")) is True
        assert await payments.verify_webhook_signature("paystack", payload,
                                                       _signature(payload, TEST_WEBHOOK_SECRET)) is False
        await payments.aclose()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_rotated_secret_key_rebuilds_client(self, orchestrator: PaymentOrchestrator,
                                                      credential_store, add_gateway, provider) -> None:
        config = await add_gateway(GatewayKind.PAYSTACK, is_default=True)
        provider.on("POST", "/transaction/initialize", handler=_paystack_initialize_ok)

        await orchestrator.initialize_payment(Decimal("10"), "payer@example.com", reference="REF_1")
        assert provider.requests[-1].headers["Authorization"] == \
            f"Bearer {TEST_SECRET_KEYS[GatewayKind.PAYSTACK]}"

        config.secret_key = "sk_test_rotated"
        await credential_store.save_config(config)

        await orchestrator.initialize_payment(Decimal("10"), "payer@example.com", reference="REF_2")
        assert provider.requests[-1].headers["Authorization"] == "Bearer sk_test_rotated"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_deactivated_gateway_is_released(self, orchestrator: PaymentOrchestrator, credential_store,
                                                   add_gateway, provider, monkeypatch) -> None:
        from config import settings
        monkeypatch.setattr(settings, "PAYSTACK_WEBHOOK_SECRET", "whsec_env")
        config = await add_gateway(GatewayKind.PAYSTACK, is_default=True)
        adapter = await orchestrator.get_gateway("paystack")
        await adapter.initialize()
        assert adapter.gateway.id == config.id

        config.is_active = False
        await credential_store.save_config(config)

        with pytest.raises(GatewayNotConfiguredError):
            await orchestrator.initialize_payment(Decimal("10"), "payer@example.com", gateway="paystack")
        assert not adapter.is_initialized
        assert adapter.gateway is None
        assert provider.requests == []

        # 저장된 secret 대신 환경 변수 secret으로 검증
        payload = {"event": "charge.success", "data": {"reference": "SUB_1_1"}}
        assert await orchestrator.verify_webhook_signature("paystack", payload,
                                                           _signature(payload, TEST_WEBHOOK_SECRET)) is False
        assert await orchestrator.verify_webhook_signature("paystack", payload,
                                                           _signature(payload, "whsec_env")) is True
