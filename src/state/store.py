"""Whole-snapshot state persistence (Redis or a local JSON file)."""

import asyncio
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import redis.asyncio as redis

from src.config import Settings
from src.models import StateMap, TargetState

logger = logging.getLogger(__name__)


class StateStoreError(RuntimeError):
    """Raised when the state snapshot cannot be loaded or saved."""
    pass


def decode_state(raw: Optional[str]) -> StateMap:
    """
    Decode a stored snapshot.

    Empty, non-JSON or non-object content is treated as an empty map.
    """
    if not raw:
        return {}
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid state snapshot, resetting: {e}")
        return {}
    if not isinstance(parsed, dict):
        logger.warning("State snapshot is not a JSON object, resetting")
        return {}
    return {str(name): TargetState.from_dict(record) for name, record in parsed.items()}


def encode_state(state: StateMap) -> str:
    return json.dumps(
        {name: record.to_dict() for name, record in state.items()},
        ensure_ascii=False,
    )


class StateStore:
    """Loads and saves the full name -> TargetState map in one operation."""

    async def load(self) -> StateMap:
        raise NotImplementedError

    async def save(self, state: StateMap) -> None:
        raise NotImplementedError

    async def close(self):
        pass


class RedisStateStore(StateStore):
    """State snapshot stored as one JSON string under a Redis key."""

    def __init__(self, redis_url: str, key: str = "state"):
        self.redis_url = redis_url
        self.key = key
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
        return self._redis

    async def close(self):
        """Close Redis connection."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def load(self) -> StateMap:
        redis_client = await self._get_redis()
        try:
            raw = await redis_client.get(self.key)
        except redis.RedisError as e:
            raise StateStoreError(f"Failed to load state from Redis: {e}") from e
        return decode_state(raw)

    async def save(self, state: StateMap) -> None:
        redis_client = await self._get_redis()
        try:
            await redis_client.set(self.key, encode_state(state))
        except redis.RedisError as e:
            raise StateStoreError(f"Failed to save state to Redis: {e}") from e


class JsonFileStateStore(StateStore):
    """State snapshot stored in a local JSON file, replaced atomically on save."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def _read(self) -> Optional[str]:
        try:
            return self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except UnicodeDecodeError as e:
            logger.warning(f"State file {self.path} is not valid UTF-8, resetting: {e}")
            return None

    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def load(self) -> StateMap:
        try:
            raw = await asyncio.to_thread(self._read)
        except OSError as e:
            raise StateStoreError(f"Failed to read state file {self.path}: {e}") from e
        return decode_state(raw)

    async def save(self, state: StateMap) -> None:
        payload = encode_state(state)
        try:
            await asyncio.to_thread(self._write, payload)
        except OSError as e:
            raise StateStoreError(f"Failed to write state file {self.path}: {e}") from e


def build_state_store(settings: Settings) -> StateStore:
    """Select the configured state backend."""
    backend = settings.state_backend.strip().lower()
    if backend == "file":
        return JsonFileStateStore(settings.state_file_path)
    if backend != "redis":
        logger.warning(f"Unknown state_backend '{settings.state_backend}', using redis")
    return RedisStateStore(settings.redis_url, settings.state_key)
