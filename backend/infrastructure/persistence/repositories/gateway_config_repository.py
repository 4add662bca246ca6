"""게이트웨이 설정 Repository (SQLAlchemy)"""
from datetime import datetime
from typing import Optional, List

from sqlalchemy import select, desc
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.gateway_config_repository import GatewayConfigRepository
from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind
from infrastructure.persistence.models.gateway_config import PaymentGateway


def _to_entity(row: PaymentGateway) -> GatewayConfigEntity:
    return GatewayConfigEntity(
        id=row.id, kind=row.type, name=row.name, public_key=row.public_key,
        secret_key=row.secret_key, webhook_secret=row.webhook_secret,
        merchant_id=row.merchant_id, environment=row.environment,
        is_active=row.is_active, is_default=row.is_default,
        config=dict(row.config or {}), updated_at=row.updated_at,
    )


class SqlGatewayConfigRepository(GatewayConfigRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_active(self, kind: GatewayKind) -> Optional[GatewayConfigEntity]:
        # 같은 종류가 여러 개 활성화되어 있으면 가장 최근에 수정된 설정
        result = await self._session.execute(
            select(PaymentGateway)
            .where(PaymentGateway.type == GatewayKind(kind), PaymentGateway.is_active.is_(True))
            .order_by(desc(PaymentGateway.updated_at), desc(PaymentGateway.id))
            .limit(1))
        row = result.scalar_one_or_none()
        return _to_entity(row) if row else None

    async def get_default(self) -> Optional[GatewayConfigEntity]:
        # 기본값 중복은 저장 시 막지 않으므로 최근 수정 순으로 하나만 고른다
        result = await self._session.execute(
            select(PaymentGateway)
            .where(PaymentGateway.is_default.is_(True), PaymentGateway.is_active.is_(True))
            .order_by(desc(PaymentGateway.updated_at), desc(PaymentGateway.id))
            .limit(1))
        row = result.scalar_one_or_none()
        return _to_entity(row) if row else None

    async def list_active(self) -> List[GatewayConfigEntity]:
        result = await self._session.execute(
            select(PaymentGateway).where(PaymentGateway.is_active.is_(True)).order_by(PaymentGateway.id))
        return [_to_entity(r) for r in result.scalars().all()]

    async def save(self, config: GatewayConfigEntity) -> GatewayConfigEntity:
        row = await self._session.get(PaymentGateway, config.id) if config.id else None
        if row is None:
            row = PaymentGateway()
            self._session.add(row)
        row.type = GatewayKind(config.kind)
        row.name = config.name
        row.public_key = config.public_key
        row.secret_key = config.secret_key
        row.webhook_secret = config.webhook_secret
        row.merchant_id = config.merchant_id
        row.environment = config.environment
        row.is_active = config.is_active
        row.is_default = config.is_default
        row.config = dict(config.config or {})
        row.updated_at = datetime.utcnow()
        await self._session.flush()
        config.id = row.id
        config.updated_at = row.updated_at
        return config
