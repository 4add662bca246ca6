"""
ORM 모델 re-export
"""
from infrastructure.persistence.database import Base
from infrastructure.persistence.models.gateway_config import PaymentGateway
from infrastructure.persistence.models.plan import SubscriptionPlan
from infrastructure.persistence.models.subscription import Subscription
from infrastructure.persistence.models.payout import Payout
from infrastructure.persistence.models.processed_webhook import ProcessedWebhook
from domain.enums import (
    GatewayKind, GatewayEnvironment, BillingCycle, SubscriptionStatus, PayoutStatus, PayoutMethod,
)
