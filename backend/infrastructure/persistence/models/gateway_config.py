"""결제 게이트웨이 설정 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, Enum, Index
from infrastructure.persistence.database import Base
from domain.enums import GatewayKind, GatewayEnvironment


class PaymentGateway(Base):
    __tablename__ = "payment_gateways"
    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(GatewayKind), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    public_key = Column(String(255), nullable=False)
    secret_key = Column(Text, nullable=False)  # 암호문만 저장
    webhook_secret = Column(String(255), nullable=True)
    merchant_id = Column(String(100), nullable=True)
    environment = Column(Enum(GatewayEnvironment), default=GatewayEnvironment.TEST, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    is_default = Column(Boolean, default=False, nullable=False, index=True)
    config = Column(JSON, default=dict, nullable=False)
    created_by = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_payment_gateways_type_active", "type", "is_active"),)

    def __repr__(self):
        return f"<PaymentGateway {self.type.value} - {self.environment.value}>"
