"""제휴 지급 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Numeric, JSON, Enum, Text, Index
from infrastructure.persistence.database import Base
from domain.enums import PayoutStatus, PayoutMethod


class Payout(Base):
    __tablename__ = "payouts"
    id = Column(Integer, primary_key=True, index=True)
    affiliate_id = Column(Integer, nullable=False, index=True)
    store_id = Column(Integer, nullable=False, index=True)
    commission_ids = Column(JSON, default=list, nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), default="USD", nullable=False)
    payment_method = Column(Enum(PayoutMethod), nullable=False)
    payment_details = Column(JSON, default=dict, nullable=False)
    status = Column(Enum(PayoutStatus), default=PayoutStatus.PENDING, nullable=False, index=True)
    transaction_id = Column(String(100), nullable=True, index=True)
    transaction_reference = Column(String(100), nullable=True, index=True)
    error = Column(JSON, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    processed_by = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_payouts_affiliate_status", "affiliate_id", "status", "created_at"),
        Index("ix_payouts_store_status", "store_id", "status", "created_at"),
    )

    def __repr__(self):
        return f"<Payout {self.id} - {self.amount} {self.currency} ({self.status.value})>"
