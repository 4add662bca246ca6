"""결제 게이트웨이 webhook 라우터

세션 인증 없이 서명 검증으로만 보호된다.
200: 처리 완료(대상 레코드가 없어도), 401: 서명 불일치, 404: 지원하지 않는 게이트웨이, 500: 내부 오류
"""
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from loguru import logger

from api.dependencies import get_webhook_dispatcher
from api.schemas.payment import WebhookResponse
from application.use_cases.webhook_dispatcher import WebhookDispatcher
from domain.enums import GatewayKind
from domain.exceptions import SignatureInvalidError, UnsupportedGatewayError
from infrastructure.payment.registry import resolve_kind

router = APIRouter(prefix="/api/webhooks", tags=["Webhook"])

SIGNATURE_HEADERS = {
    GatewayKind.FLUTTERWAVE: ("verif-hash", "x-flutterwave-signature"),
    GatewayKind.PAYSTACK: ("x-paystack-signature",),
    GatewayKind.SQUAD: ("x-squad-signature", "authorization"),
}


def _signature(request: Request, kind: GatewayKind) -> Optional[str]:
    for header in SIGNATURE_HEADERS[kind]:
        value = request.headers.get(header)
        if value:
            return value
    return None


@router.post("/payment/{gateway}", response_model=WebhookResponse)
async def receive_payment_webhook(gateway: str, request: Request,
                                  dispatcher: WebhookDispatcher = Depends(get_webhook_dispatcher)):
    try:
        kind = resolve_kind(gateway)
    except UnsupportedGatewayError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    raw_body = await request.body()
    try:
        payload = json.loads(raw_body or b"{}")
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON 본문이 아닙니다.")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="JSON 객체가 아닙니다.")

    try:
        outcome = await dispatcher.handle(kind, payload, _signature(request, kind), raw_body)
    except SignatureInvalidError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
    except Exception as e:
        logger.exception(f"[{kind.value}] webhook 처리 실패: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))

    return WebhookResponse(success=True, message=outcome.message,
                           event=outcome.result.event if outcome.result else None,
                           duplicate=outcome.duplicate)
