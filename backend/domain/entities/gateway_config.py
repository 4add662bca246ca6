"""결제 게이트웨이 설정 도메인 엔티티"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Dict, Any

from domain.enums import GatewayKind, GatewayEnvironment


@dataclass
class GatewayConfigEntity:
    """게이트웨이 연동 정보. secret_key는 항상 암호문으로만 보관한다."""
    kind: GatewayKind
    name: str
    public_key: str
    secret_key: str
    webhook_secret: Optional[str] = None
    merchant_id: Optional[str] = None
    environment: GatewayEnvironment = GatewayEnvironment.TEST
    is_active: bool = True
    is_default: bool = False
    config: Dict[str, Any] = field(default_factory=dict)
    id: Optional[int] = None
    updated_at: Optional[datetime] = None

    @property
    def is_live(self) -> bool:
        return self.environment == GatewayEnvironment.LIVE

    def __repr__(self):
        # 비밀키는 암호문이라도 출력하지 않는다
        return f"<GatewayConfig {self.kind.value} {self.environment.value} default={self.is_default}>"
