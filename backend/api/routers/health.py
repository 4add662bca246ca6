"""헬스 체크 라우터"""
from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from api.dependencies import get_orchestrator
from config import settings
from infrastructure.payment.orchestrator import PaymentOrchestrator

router = APIRouter(tags=["시스템"])


@router.get("/health")
async def health_check(payments: PaymentOrchestrator = Depends(get_orchestrator)):
    """서비스 상태 + 결제에 쓸 수 있는 게이트웨이 수 (기본 게이트웨이가 없으면 degraded)"""
    try:
        gateways = await payments.available_gateways()
    except SQLAlchemyError as e:
        logger.error(f"헬스 체크: 게이트웨이 설정 조회 실패 - {e}")
        return {"status": "unhealthy", "service": settings.APP_NAME, "version": settings.APP_VERSION,
                "database": "unavailable"}

    has_default = any(g["is_default"] for g in gateways)
    return {
        "status": "healthy" if has_default else "degraded",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "gateways": [g["type"] for g in gateways],
        "default_gateway": next((g["type"] for g in gateways if g["is_default"]), None),
    }


@router.get("/")
async def root():
    return {"service": settings.APP_NAME, "version": settings.APP_VERSION, "docs": "/docs",
            "health": "/health", "webhooks": "/api/webhooks/payment/{gateway}"}
