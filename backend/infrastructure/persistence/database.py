"""
데이터베이스 연결 및 세션 관리

사용법: from infrastructure.persistence.database import Base, get_session
게이트웨이 자격 증명 조회(CredentialStore)는 요청 세션과 별도로 get_db_session을 쓴다.
"""
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base

from config import settings

os.makedirs("./data", exist_ok=True)

# SQLite는 webhook 동시 처리 시 스레드 검사를 끈다
_connect_args = {"check_same_thread": False} if settings.DB_URL.startswith("sqlite") else {}

engine = create_async_engine(
    settings.DB_URL,
    echo=settings.DEBUG,
    connect_args=_connect_args,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)

Base = declarative_base()


async def init_db():
    """테이블 생성 (게이트웨이 설정, 플랜, 구독, 지급, 처리된 webhook)"""
    import infrastructure.persistence.models  # noqa: F401
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """요청 단위 세션. 예외가 나면 롤백해서 webhook 재전송 시 다시 처리되게 한다."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@asynccontextmanager
async def get_db_session():
    """CLI, 자격 증명 조회용 컨텍스트 매니저 세션"""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
