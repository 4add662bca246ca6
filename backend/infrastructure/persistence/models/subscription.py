"""구독 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, JSON, Enum, ForeignKey, Index
from infrastructure.persistence.database import Base
from domain.enums import SubscriptionStatus, GatewayKind


class Subscription(Base):
    __tablename__ = "subscriptions"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, unique=True, index=True, nullable=False)  # 사용자당 1행
    plan_id = Column(Integer, ForeignKey("subscription_plans.id"), nullable=False, index=True)
    status = Column(Enum(SubscriptionStatus), default=SubscriptionStatus.TRIAL, nullable=False, index=True)
    start_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    end_date = Column(DateTime, nullable=False)
    next_billing_date = Column(DateTime, nullable=True, index=True)
    trial_end_date = Column(DateTime, nullable=True)
    auto_renew = Column(Boolean, default=True, nullable=False)
    payment_gateway = Column(Enum(GatewayKind), default=GatewayKind.PAYSTACK, nullable=False)
    # metadata는 Declarative 예약어라 컬럼명만 metadata로 둔다
    metadata_json = Column("metadata", JSON, default=dict, nullable=False)
    transaction_reference = Column(String(100), nullable=True, index=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by = Column(Integer, nullable=True)
    cancellation_reason = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_subscriptions_user_status", "user_id", "status"),
        Index("ix_subscriptions_status_billing", "status", "next_billing_date"),
    )

    def __repr__(self):
        return f"<Subscription user={self.user_id} - {self.status.value}>"
