"""처리 완료 webhook 이벤트 ORM 모델"""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, UniqueConstraint
from infrastructure.persistence.database import Base


class ProcessedWebhook(Base):
    __tablename__ = "processed_webhooks"
    id = Column(Integer, primary_key=True, index=True)
    gateway = Column(String(20), nullable=False)
    transaction_reference = Column(String(100), nullable=False)
    event_type = Column(String(50), nullable=False)
    processed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("gateway", "transaction_reference", "event_type", name="uq_processed_webhook"),
    )

    def __repr__(self):
        return f"<ProcessedWebhook {self.gateway} {self.event_type} {self.transaction_reference}>"
