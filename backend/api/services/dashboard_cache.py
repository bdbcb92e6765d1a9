"""
Cache Redis dos payloads do dashboard. Falhas do Redis nunca derrubam a
requisição: o serviço de dashboard recalcula a partir do MongoDB.
"""
from typing import Any, Optional
import json

import redis.asyncio as redis
from redis.exceptions import RedisError

from backend.utils.logging_utils import build_logger

DASHBOARD_KEYS = ("stats", "farms_by_state", "crop_distribution", "farm_size_distribution", "land_use", "growth")


class DashboardCache:
    def __init__(self, redis_url: str, ttl: int = 60, prefix: str = "dashboard:", logger=None, client=None):
        """
        Inicializa o cache do dashboard.
        Parâmetros:
            redis_url (str): URL do Redis (vazia desabilita o cache)
            ttl (int): validade das entradas em segundos
            prefix (str): prefixo das chaves
            logger (logging.Logger, opcional): Logger para logs
            client (redis.Redis, opcional): cliente já configurado
        """
        self.redis_url = redis_url
        self.ttl = ttl
        self.prefix = prefix
        self.logger = logger or build_logger("dashboard_cache")
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.redis_url) or self._client is not None

    def _get_client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(self.redis_url)
        return self._client

    def _key(self, name: str) -> str:
        return f"{self.prefix}{name}"

    async def get(self, name: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = await self._get_client().get(self._key(name))
        except (RedisError, OSError) as exc:
            self.logger.warning(f"Falha ao ler cache do dashboard: key={name}, erro={exc}")
            return None
        if raw is None:
            self.logger.debug(f"Cache miss: key={name}")
            return None
        try:
            value = json.loads(raw)
        except ValueError as exc:
            self.logger.warning(f"Entrada corrompida no cache do dashboard: key={name}, erro={exc}")
            return None
        self.logger.debug(f"Cache hit: key={name}")
        return value

    async def set(self, name: str, value: Any) -> None:
        if not self.enabled:
            return
        try:
            await self._get_client().set(self._key(name), json.dumps(value), ex=self.ttl)
        except (RedisError, OSError) as exc:
            self.logger.warning(f"Falha ao gravar cache do dashboard: key={name}, erro={exc}")

    async def invalidate(self) -> None:
        """Remove todas as entradas do dashboard (chamado após escritas)."""
        if not self.enabled:
            return
        try:
            await self._get_client().delete(*[self._key(k) for k in DASHBOARD_KEYS])
            self.logger.info("Cache do dashboard invalidado")
        except (RedisError, OSError) as exc:
            self.logger.warning(f"Falha ao invalidar cache do dashboard: {exc}")

    async def ping(self) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(await self._get_client().ping())
        except (RedisError, OSError) as exc:
            self.logger.warning(f"Redis indisponível: {exc}")
            return False

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
