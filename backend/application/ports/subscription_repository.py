"""구독 Repository 인터페이스"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List
from domain.entities.subscription import SubscriptionEntity


class SubscriptionRepository(ABC):
    @abstractmethod
    async def get_by_user(self, user_id: int) -> Optional[SubscriptionEntity]: ...
    @abstractmethod
    async def get_live_by_user(self, user_id: int) -> Optional[SubscriptionEntity]: ...
    @abstractmethod
    async def list_by_user(self, user_id: int) -> List[SubscriptionEntity]: ...
    @abstractmethod
    async def get_by_transaction_reference(self, reference: str,
                                           user_id: Optional[int] = None) -> Optional[SubscriptionEntity]: ...
    @abstractmethod
    async def find_due_for_renewal(self, now: datetime) -> List[SubscriptionEntity]: ...
    @abstractmethod
    async def find_lapsed(self, now: datetime) -> List[SubscriptionEntity]: ...
    @abstractmethod
    async def save(self, subscription: SubscriptionEntity) -> SubscriptionEntity: ...
