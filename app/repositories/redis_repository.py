import json
import logging
import time
from typing import Any, Generic, Optional, Type, TypeVar

import redis
from pydantic import BaseModel
from redis.exceptions import ConnectionError, TimeoutError

from app.config.settings import get_settings
from app.repositories.dummy_redis_client import DummyRedisClient

logger = logging.getLogger(__name__)


T = TypeVar("T", bound=BaseModel)


class RedisRepository(Generic[T]):
    """
    Generic Redis repository storing pydantic models as JSON under a key prefix.

    The connection is opened on first use. When Redis cannot be reached after
    REDIS_CONNECT_RETRIES attempts, an in-memory DummyRedisClient is used.
    """

    def __init__(self, model_class: Type[T], prefix: str = ""):
        self.settings = get_settings()
        self.model_class = model_class
        self.prefix = prefix
        self._redis_client = None

    @property
    def redis_client(self):
        if self._redis_client is None:
            self.connect_to_redis(max_retries=self.settings.REDIS_CONNECT_RETRIES)
        return self._redis_client

    @redis_client.setter
    def redis_client(self, client) -> None:
        self._redis_client = client

    def connect_to_redis(self, max_retries: int = 3, retry_delay: float = 1.0) -> None:
        """Open the Redis connection, retrying before falling back to local storage."""
        retries = 0
        last_error: Exception | None = None

        while retries < max_retries:
            try:
                client = redis.Redis(
                    host=self.settings.REDIS_HOST,
                    port=self.settings.REDIS_PORT,
                    db=self.settings.REDIS_DB,
                    password=self.settings.REDIS_PASSWORD,
                    decode_responses=True,
                    socket_timeout=5.0,
                    socket_connect_timeout=5.0,
                )
                client.ping()
                self._redis_client = client
                logger.info(f"Redis connection established: {self.settings.REDIS_HOST}:{self.settings.REDIS_PORT}")
                return
            except (ConnectionError, TimeoutError) as e:
                retries += 1
                last_error = e
                logger.warning(f"Redis connection attempt {retries}/{max_retries} failed: {e}")
                if retries < max_retries:
                    time.sleep(retry_delay)

        logger.error(f"Could not connect to Redis after {max_retries} attempts: {last_error}")
        self._redis_client = DummyRedisClient()

    def _get_key(self, key: str) -> str:
        return f"{self.prefix}:{key}" if self.prefix else key

    def get(self, key: str) -> Optional[T]:
        """Load and validate the model stored under key."""
        redis_key = self._get_key(key)
        data = self.redis_client.get(redis_key)

        if data is None:
            logger.debug(f"Key {redis_key} not found in Redis")
            return None

        if isinstance(data, bytes):
            data = data.decode("utf-8")

        try:
            return self.model_class.model_validate(json.loads(data))
        except (ValueError, TypeError) as e:
            logger.error(f"Invalid {self.model_class.__name__} payload at {redis_key}: {e}")
            return None

    def set(self, key: str, value: T, expiration: Optional[int] = None) -> bool:
        """Store value under key, optionally expiring after `expiration` seconds."""
        serialized = value.model_dump_json() if isinstance(value, BaseModel) else json.dumps(value)
        return bool(self.redis_client.set(self._get_key(key), serialized, ex=expiration))

    def set_if_not_exists(self, key: str, value: Any, expiration: Optional[int] = None) -> bool:
        """Store value only when key is absent (NX). Returns False if it already existed."""
        if isinstance(value, BaseModel):
            value = value.model_dump_json()
        elif not isinstance(value, (str, int, float, bool)):
            value = json.dumps(value)

        return bool(self.redis_client.set(self._get_key(key), value, ex=expiration, nx=True))

    def delete(self, key: str) -> bool:
        return bool(self.redis_client.delete(self._get_key(key)))

    def exists(self, key: str) -> bool:
        return bool(self.redis_client.exists(self._get_key(key)))
