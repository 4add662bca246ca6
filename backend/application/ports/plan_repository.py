"""구독 플랜 Repository 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional, List
from domain.entities.plan import PlanEntity


class PlanRepository(ABC):
    @abstractmethod
    async def get_by_id(self, plan_id: int) -> Optional[PlanEntity]: ...
    @abstractmethod
    async def list_active(self) -> List[PlanEntity]: ...
