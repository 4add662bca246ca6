"""처리 완료된 webhook 이벤트 Repository 인터페이스 (중복 수신 방지)"""
from abc import ABC, abstractmethod


class ProcessedWebhookRepository(ABC):
    @abstractmethod
    async def exists(self, gateway: str, transaction_reference: str, event_type: str) -> bool: ...
    @abstractmethod
    async def record(self, gateway: str, transaction_reference: str, event_type: str) -> None: ...
