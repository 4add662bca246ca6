"""지급 Repository 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional
from domain.entities.payout import PayoutEntity


class PayoutRepository(ABC):
    @abstractmethod
    async def get_by_id(self, payout_id: int) -> Optional[PayoutEntity]: ...
    @abstractmethod
    async def get_by_transaction_reference(self, reference: str) -> Optional[PayoutEntity]: ...
    @abstractmethod
    async def save(self, payout: PayoutEntity) -> PayoutEntity: ...
