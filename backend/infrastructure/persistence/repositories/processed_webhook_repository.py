"""처리 완료 webhook Repository (SQLAlchemy)"""
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from application.ports.processed_webhook_repository import ProcessedWebhookRepository
from infrastructure.persistence.models.processed_webhook import ProcessedWebhook


class SqlProcessedWebhookRepository(ProcessedWebhookRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def exists(self, gateway: str, transaction_reference: str, event_type: str) -> bool:
        result = await self._session.execute(
            select(func.count(ProcessedWebhook.id)).where(
                ProcessedWebhook.gateway == gateway,
                ProcessedWebhook.transaction_reference == transaction_reference,
                ProcessedWebhook.event_type == event_type,
            ))
        return (result.scalar() or 0) > 0

    async def record(self, gateway: str, transaction_reference: str, event_type: str) -> None:
        self._session.add(ProcessedWebhook(gateway=gateway, transaction_reference=transaction_reference,
                                           event_type=event_type))
        await self._session.flush()
