"""게이트웨이 자격 증명 저장소

게이트웨이 설정 조회(활성/기본), 비밀키 암복호화, 짧은 TTL 캐시를 담당한다.
결제 요청마다 DB를 조회하지 않도록 캐시를 두고, 설정 저장 시 명시적으로 비운다.
"""
import time
from contextlib import asynccontextmanager
from typing import Optional, List, Dict, Tuple, Any, Callable, AsyncContextManager

from loguru import logger

from config import settings
from application.ports.gateway_config_repository import GatewayConfigRepository
from domain.entities.gateway_config import GatewayConfigEntity
from domain.enums import GatewayKind
from infrastructure.crypto.credential_cipher import CredentialCipher, get_cipher

RepositoryScope = Callable[[], AsyncContextManager[GatewayConfigRepository]]

_DEFAULT_KEY = "__default__"
_ACTIVE_LIST_KEY = "__active__"


@asynccontextmanager
async def sql_repository_scope():
    """요청 세션과 분리된 짧은 세션으로 설정을 조회"""
    from infrastructure.persistence.database import get_db_session
    from infrastructure.persistence.repositories.gateway_config_repository import SqlGatewayConfigRepository

    async with get_db_session() as session:
        yield SqlGatewayConfigRepository(session)


class CredentialStore:
    def __init__(self, repository_scope: RepositoryScope = sql_repository_scope,
                 cipher: Optional[CredentialCipher] = None, cache_ttl: Optional[int] = None):
        self._scope = repository_scope
        self._cipher = cipher
        self._ttl = settings.GATEWAY_CONFIG_CACHE_TTL if cache_ttl is None else cache_ttl
        self._cache: Dict[str, Tuple[float, Any]] = {}
        # invalidate()마다 증가. 어댑터가 자기 설정이 낡았는지 판단하는 기준
        self._generation = 0

    @property
    def cipher(self) -> CredentialCipher:
        if self._cipher is None:
            self._cipher = get_cipher()
        return self._cipher

    # ==================== 암복호화 ====================

    def encrypt(self, secret: str) -> str:
        return self.cipher.encrypt(secret)

    def decrypt(self, ciphertext: str) -> str:
        return self.cipher.decrypt(ciphertext)

    def is_encrypted(self, value: str) -> bool:
        return self.cipher.is_encrypted(value)

    def decrypt_secret(self, config: GatewayConfigEntity) -> str:
        """DecryptionError는 호출자에게 그대로 전파"""
        try:
            return self.decrypt(config.secret_key)
        except Exception:
            logger.error(f"[{config.kind.value}] 비밀키 복호화 실패 (config id={config.id})")
            raise

    # ==================== 캐시 ====================

    def _cached(self, key: str):
        entry = self._cache.get(key)
        if entry is None:
            return None
        expires_at, value = entry
        if expires_at < time.monotonic():
            self._cache.pop(key, None)
            return None
        return entry

    def _store(self, key: str, value: Any) -> None:
        if self._ttl > 0:
            self._cache[key] = (time.monotonic() + self._ttl, value)

    @property
    def generation(self) -> int:
        return self._generation

    def invalidate(self) -> None:
        self._cache.clear()
        self._generation += 1

    def is_stale(self, generation: Optional[int], resolved_at: float) -> bool:
        """generation 시점에 조회한 설정을 다시 조회해야 하는지 (TTL 0이면 항상)"""
        if generation != self._generation:
            return True
        return time.monotonic() - resolved_at >= self._ttl

    # ==================== 조회 ====================

    async def get_active_config(self, kind: GatewayKind) -> Optional[GatewayConfigEntity]:
        key = GatewayKind(kind).value
        entry = self._cached(key)
        if entry is not None:
            return entry[1]
        async with self._scope() as repo:
            config = await repo.get_active(GatewayKind(kind))
        self._store(key, config)
        return config

    async def get_default_config(self) -> Optional[GatewayConfigEntity]:
        entry = self._cached(_DEFAULT_KEY)
        if entry is not None:
            return entry[1]
        async with self._scope() as repo:
            config = await repo.get_default()
        self._store(_DEFAULT_KEY, config)
        return config

    async def list_active(self) -> List[GatewayConfigEntity]:
        entry = self._cached(_ACTIVE_LIST_KEY)
        if entry is not None:
            return entry[1]
        async with self._scope() as repo:
            configs = await repo.list_active()
        self._store(_ACTIVE_LIST_KEY, configs)
        return configs

    # ==================== 저장 ====================

    async def save_config(self, config: GatewayConfigEntity) -> GatewayConfigEntity:
        """비밀키가 평문이면 암호화해서 저장. 이미 암호문이면 그대로 둔다."""
        if not self.is_encrypted(config.secret_key):
            config.secret_key = self.encrypt(config.secret_key)
        async with self._scope() as repo:
            saved = await repo.save(config)
        self.invalidate()
        logger.info(f"게이트웨이 설정 저장: {saved.kind.value} (id={saved.id}, default={saved.is_default})")
        return saved
