"""
결제 오케스트레이션 서비스 - FastAPI 메인 애플리케이션
"""
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from config import settings
from api.dependencies import get_orchestrator
from api.routers import health, payment, webhooks
from domain.exceptions import (
    DomainError, GatewayNotConfiguredError, ProviderTransportError, UnsupportedGatewayError,
)
from infrastructure.persistence.database import init_db

# 로깅 설정
os.makedirs("./logs", exist_ok=True)
logger.add(
    settings.LOG_FILE,
    rotation="10 MB",
    retention="30 days",
    level=settings.LOG_LEVEL
)

# 라우터에서 처리하지 않은 도메인 예외 -> HTTP 상태
DOMAIN_ERROR_STATUS = (
    (UnsupportedGatewayError, status.HTTP_404_NOT_FOUND),
    (GatewayNotConfiguredError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ProviderTransportError, status.HTTP_502_BAD_GATEWAY),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """애플리케이션 수명 주기 관리"""
    logger.info("서비스 시작...")
    await init_db()
    logger.info("데이터베이스 초기화 완료")

    gateways = await get_orchestrator().available_gateways()
    if not any(g["is_default"] for g in gateways):
        logger.warning("기본 결제 게이트웨이가 없습니다. tools/admin.py gateway-add --default 로 등록하세요.")
    logger.info(f"활성 게이트웨이: {[g['type'] for g in gateways]}")

    yield

    await get_orchestrator().aclose()
    logger.info("서비스 종료...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="결제 게이트웨이 연동 - Flutterwave, Paystack, Squad 결제/이체/webhook 처리",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(DomainError)
async def domain_error_handler(request: Request, exc: DomainError):
    status_code = next((code for error, code in DOMAIN_ERROR_STATUS if isinstance(exc, error)),
                       status.HTTP_400_BAD_REQUEST)
    logger.warning(f"{request.method} {request.url.path} -> {status_code}: {exc}")
    return JSONResponse(status_code=status_code, content={"success": False, "message": str(exc)})


app.include_router(health.router)
app.include_router(payment.router)
app.include_router(webhooks.router)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
