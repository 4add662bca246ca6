"""SQLAlchemy Repository 구현"""
from infrastructure.persistence.repositories.gateway_config_repository import SqlGatewayConfigRepository
from infrastructure.persistence.repositories.plan_repository import SqlPlanRepository
from infrastructure.persistence.repositories.subscription_repository import SqlSubscriptionRepository
from infrastructure.persistence.repositories.payout_repository import SqlPayoutRepository
from infrastructure.persistence.repositories.processed_webhook_repository import SqlProcessedWebhookRepository
