"""도메인 열거형"""
import enum


class GatewayKind(str, enum.Enum):
    FLUTTERWAVE = "flutterwave"
    PAYSTACK = "paystack"
    SQUAD = "squad"


class GatewayEnvironment(str, enum.Enum):
    TEST = "test"
    LIVE = "live"


class BillingCycle(str, enum.Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class SubscriptionStatus(str, enum.Enum):
    TRIAL = "trial"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PayoutStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PayoutMethod(str, enum.Enum):
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    FLUTTERWAVE = "flutterwave"
    PAYSTACK = "paystack"
    SQUAD = "squad"


class PaymentStatus(str, enum.Enum):
    """게이트웨이 응답을 정규화한 결제/이체 상태"""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class WebhookEventType(str, enum.Enum):
    PAYMENT = "payment"
    TRANSFER = "transfer"
    UNKNOWN = "unknown"


# 게이트웨이로 바로 이체 가능한 지급 수단
GATEWAY_PAYOUT_METHODS = {
    PayoutMethod.FLUTTERWAVE: GatewayKind.FLUTTERWAVE,
    PayoutMethod.PAYSTACK: GatewayKind.PAYSTACK,
    PayoutMethod.SQUAD: GatewayKind.SQUAD,
}
