"""결제 게이트웨이 포트 인터페이스

모든 게이트웨이 어댑터가 따르는 공통 계약. 금액은 항상 주 통화 단위(원, 달러, 나이라)로
주고받으며 최소 단위(코보, 센트) 변환은 어댑터 내부에서만 일어난다.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Optional, Dict, Any, Union

from domain.enums import GatewayKind, PaymentStatus, WebhookEventType


@dataclass
class PaymentInitResult:
    success: bool
    payment_link: Optional[str]
    transaction_reference: str
    access_code: Optional[str] = None
    raw_response: Any = None


@dataclass
class PaymentVerification:
    success: bool
    status: Optional[PaymentStatus] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    transaction_id: Optional[str] = None
    transaction_reference: Optional[str] = None
    customer: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    raw_response: Any = None

    @property
    def is_completed(self) -> bool:
        return self.success and self.status == PaymentStatus.COMPLETED


@dataclass
class TransferDestination:
    """이체 수취 계좌. 게이트웨이마다 필요한 필드가 다르다."""
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bank_code: Optional[str] = None
    recipient_code: Optional[str] = None  # Paystack
    email: Optional[str] = None


@dataclass
class TransferResult:
    success: bool
    transfer_id: Optional[str]
    reference: Optional[str]
    status: Optional[str]
    raw_response: Any = None


@dataclass
class WebhookResult:
    """게이트웨이별 webhook 이벤트를 정규화한 결과"""
    type: WebhookEventType
    event: Optional[str] = None
    status: Optional[PaymentStatus] = None
    transaction_id: Optional[str] = None
    transaction_reference: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    context: Optional[str] = None  # 결제 메타데이터의 type (subscription, renewal, payout)
    customer: Optional[Dict[str, Any]] = None
    raw_response: Any = field(default=None, repr=False)


class PaymentGatewayPort(ABC):
    kind: GatewayKind

    @abstractmethod
    async def initialize(self) -> None: ...

    @abstractmethod
    async def initialize_payment(self, amount: Union[Decimal, int, float, str], email: str,
                                 currency: Optional[str] = None, reference: Optional[str] = None,
                                 callback_url: Optional[str] = None,
                                 metadata: Optional[Dict[str, Any]] = None) -> PaymentInitResult: ...

    @abstractmethod
    async def verify_payment(self, transaction_id_or_ref: str) -> PaymentVerification: ...

    @abstractmethod
    async def initiate_transfer(self, destination: TransferDestination,
                                amount: Union[Decimal, int, float, str],
                                currency: Optional[str] = None, narration: Optional[str] = None,
                                reference: Optional[str] = None) -> TransferResult: ...

    @abstractmethod
    def verify_webhook_signature(self, payload: Union[Dict[str, Any], bytes, str],
                                 signature: Optional[str]) -> bool: ...

    @abstractmethod
    def normalize_webhook(self, payload: Dict[str, Any]) -> WebhookResult: ...
