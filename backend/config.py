"""
결제 오케스트레이션 서비스 설정
"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """애플리케이션 설정"""

    # 앱 기본 설정
    APP_NAME: str = "제휴 네트워크 결제 오케스트레이션"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # 서버 설정
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # 데이터베이스 설정
    DB_URL: str = "sqlite+aiosqlite:///./data/payments.db"

    # 게이트웨이 비밀키 암호화 (마스터 시크릿 교체 시 기존 암호문 복호화 불가)
    ENCRYPTION_SECRET: str = "default-secret"
    ENCRYPTION_SALT: str = "salt"

    # 게이트웨이 공통 설정
    GATEWAY_TIMEOUT: float = 30.0  # 초
    GATEWAY_CONFIG_CACHE_TTL: int = 60  # 초, 0이면 캐시 안 함

    # Flutterwave 설정
    FLUTTERWAVE_API_URL: str = "https://api.flutterwave.com/v3"
    FLUTTERWAVE_WEBHOOK_SECRET: str = ""
    FLUTTERWAVE_TRANSFER_WEBHOOK_URL: str = ""

    # Paystack 설정
    PAYSTACK_API_URL: str = "https://api.paystack.co"
    PAYSTACK_WEBHOOK_SECRET: str = ""

    # Squad 설정
    SQUAD_SANDBOX_URL: str = "https://sandbox-api-d.squadco.com"
    SQUAD_LIVE_URL: str = "https://api-d.squadco.com"
    SQUAD_WEBHOOK_SECRET: str = ""

    # 결제 콜백이 돌아갈 프론트엔드 주소
    FRONTEND_URL: str = "http://localhost:3000"

    # CORS 설정
    CORS_ORIGINS: list = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # 로깅 설정
    LOG_LEVEL: str = "DEBUG"
    LOG_FILE: str = "./logs/app.log"

    class Config:
        env_file = ".env.backend"  # 백엔드 전용 환경 변수 파일
        case_sensitive = True
        env_file_encoding = "utf-8"


@lru_cache()
def get_settings() -> Settings:
    """설정 싱글톤 반환"""
    return Settings()


# 설정 인스턴스
settings = get_settings()
