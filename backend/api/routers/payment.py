"""결제 게이트웨이 조회 라우터"""
from fastapi import APIRouter, Depends

from api.dependencies import get_orchestrator
from api.schemas.payment import GatewayInfo, GatewayListResponse
from infrastructure.payment.orchestrator import PaymentOrchestrator

router = APIRouter(tags=["결제"])


@router.get("/api/payment/gateways", response_model=GatewayListResponse)
async def list_gateways(payments: PaymentOrchestrator = Depends(get_orchestrator)):
    """활성 게이트웨이 목록 (결제 화면 선택지)"""
    gateways = await payments.available_gateways()
    return GatewayListResponse(success=True, gateways=[GatewayInfo(**g) for g in gateways])
