"""
Pytest 설정 및 공통 fixture
"""
import json
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Any, Callable, Dict, Optional, Tuple

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind, GatewayEnvironment
from infrastructure.crypto.credential_cipher import CredentialCipher
from infrastructure.payment.credential_store import CredentialStore
from infrastructure.payment.orchestrator import PaymentOrchestrator
from infrastructure.persistence.database import Base
from infrastructure.persistence.repositories import SqlGatewayConfigRepository
import infrastructure.persistence.models  # noqa: F401

TEST_SECRET_KEYS = {
    GatewayKind.FLUTTERWAVE: "FLWSECK_TEST-abc123",
    GatewayKind.PAYSTACK: "sk_test_paystack123",
    GatewayKind.SQUAD: "sandbox_sk_squad123",
}
TEST_WEBHOOK_SECRET = "whsec_test_secret"


class FakeProvider:
    """게이트웨이 HTTP 호출을 기록하고 (method, path)별로 등록한 응답을 돌려준다."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Callable[[httpx.Request], httpx.Response]] = {}
        self.requests = []

    def on(self, method: str, path: str, status_code: int = 200, json: Any = None,
           handler: Optional[Callable[[httpx.Request], httpx.Response]] = None) -> None:
        self.routes[(method, path)] = handler or (lambda request: httpx.Response(status_code, json=json))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"status": False, "message": f"no route {request.url.path}"})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


@pytest.fixture(scope="session")
def cipher() -> CredentialCipher:
    """테스트용 cipher (scrypt 키 유도 비용 때문에 세션 단위로 공유)"""
    return CredentialCipher(secret="test-master-secret", salt="salt")


@pytest_asyncio.fixture
async def session() -> AsyncGenerator[AsyncSession, Any]:
    """인메모리 SQLite 세션"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def credential_store(session: AsyncSession, cipher: CredentialCipher) -> CredentialStore:
    """테스트 세션을 쓰는 자격 증명 저장소 (캐시 없음)"""

    @asynccontextmanager
    async def scope():
        yield SqlGatewayConfigRepository(session)

    return CredentialStore(repository_scope=scope, cipher=cipher, cache_ttl=0)


@pytest.fixture
def add_gateway(credential_store: CredentialStore):
    """게이트웨이 설정 저장 helper"""

    async def _add(kind: GatewayKind, is_default: bool = False,
                   environment: GatewayEnvironment = GatewayEnvironment.TEST,
                   webhook_secret: Optional[str] = TEST_WEBHOOK_SECRET,
                   is_active: bool = True) -> GatewayConfigEntity:
        return await credential_store.save_config(GatewayConfigEntity(
            kind=kind,
            name=f"{kind.value} test",
            public_key=f"pk_{kind.value}",
            secret_key=TEST_SECRET_KEYS[kind],
            webhook_secret=webhook_secret,
            environment=environment,
            is_default=is_default,
            is_active=is_active,
        ))

    return _add


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def orchestrator(credential_store: CredentialStore,
                       provider: FakeProvider) -> AsyncGenerator[PaymentOrchestrator, Any]:
    payments = PaymentOrchestrator(credential_store=credential_store, transport=provider.transport)
    yield payments
    await payments.aclose()
