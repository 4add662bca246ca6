"""게이트웨이 어댑터 레지스트리

종류별 어댑터를 처음 요청될 때 한 번 만들고 프로세스 동안 재사용한다.
"""
from typing import Dict, List, Optional, Type

import httpx

from domain.enums import GatewayKind
from domain.exceptions import UnsupportedGatewayError
from infrastructure.payment.base import BaseGateway
from infrastructure.payment.credential_store import CredentialStore
from infrastructure.payment.flutterwave_gateway import FlutterwaveGateway
from infrastructure.payment.paystack_gateway import PaystackGateway
from infrastructure.payment.squad_gateway import SquadGateway

GATEWAY_CLASSES: List[Type[BaseGateway]] = [FlutterwaveGateway, PaystackGateway, SquadGateway]


def resolve_kind(kind) -> GatewayKind:
    """문자열/열거형을 GatewayKind로. 모르는 값이면 UnsupportedGatewayError"""
    if isinstance(kind, GatewayKind):
        return kind
    try:
        return GatewayKind(str(kind).lower())
    except ValueError:
        raise UnsupportedGatewayError(str(kind))


class GatewayRegistry:
    def __init__(self, credential_store: CredentialStore,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self._credentials = credential_store
        self._transport = transport
        self._classes: Dict[GatewayKind, Type[BaseGateway]] = {cls.kind: cls for cls in GATEWAY_CLASSES}
        self._instances: Dict[GatewayKind, BaseGateway] = {}

    @property
    def kinds(self) -> List[GatewayKind]:
        return list(self._classes)

    def get(self, kind) -> BaseGateway:
        kind = resolve_kind(kind)
        instance = self._instances.get(kind)
        if instance is None:
            instance = self._classes[kind](self._credentials, transport=self._transport)
            self._instances[kind] = instance
        return instance

    async def aclose(self) -> None:
        for instance in self._instances.values():
            await instance.aclose()
        self._instances.clear()
