"""게이트웨이 설정 Repository 인터페이스"""
from abc import ABC, abstractmethod
from typing import Optional, List
from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind


class GatewayConfigRepository(ABC):
    @abstractmethod
    async def get_active(self, kind: GatewayKind) -> Optional[GatewayConfigEntity]: ...
    @abstractmethod
    async def get_default(self) -> Optional[GatewayConfigEntity]: ...
    @abstractmethod
    async def list_active(self) -> List[GatewayConfigEntity]: ...
    @abstractmethod
    async def save(self, config: GatewayConfigEntity) -> GatewayConfigEntity: ...
