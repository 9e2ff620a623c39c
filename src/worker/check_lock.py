"""Redis-based single-flight lock around a check run."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import uuid4

import redis.asyncio as redis

logger = logging.getLogger(__name__)

LOCK_KEY = "restock:check:lock"

# Returns: 0 = not found/already released, 1 = deleted, 2 = mismatch
_RELEASE_SCRIPT = """
local lock_value = redis.call('GET', KEYS[1])
if not lock_value then
    return 0
end

local success, data = pcall(cjson.decode, lock_value)
if not success then
    return 2
end

if data.run_id == ARGV[1] and data.token == ARGV[2] then
    redis.call('DEL', KEYS[1])
    return 1
else
    return 2
end
"""


class CheckLockManager:
    """
    Prevents overlapping check runs from clobbering each other's state.

    Features:
    - TTL-based expiration so a crashed run cannot hold the lock forever
    - Token-based ownership verification on release
    """

    def __init__(self, redis_url: str, key: str = LOCK_KEY):
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

    async def acquire_lock(self, run_id: str, ttl_seconds: int = 600) -> Optional[str]:
        """
        Acquire the lock.

        Args:
            run_id: Unique run identifier
            ttl_seconds: Time-to-live in seconds

        Returns:
            Token string if lock acquired, None if already held
        """
        redis_client = await self._get_redis()

        token = uuid4().hex
        lock_value = json.dumps({
            "run_id": run_id,
            "token": token,
            "started_at": datetime.now(timezone.utc).isoformat(),
        })

        acquired = await redis_client.set(self.key, lock_value, nx=True, ex=ttl_seconds)
        if acquired:
            logger.debug(f"Acquired check lock for run_id: {run_id[:16]}")
            return token

        info = await self.get_lock_info()
        holder = (info or {}).get("run_id") or "unknown"
        logger.info(f"Check lock already held by run_id: {holder[:16]}")
        return None

    async def release_lock(self, run_id: str, token: str) -> bool:
        """
        Release the lock only if it is still owned by this run.

        Returns:
            True if released (or already gone), False on ownership mismatch
        """
        redis_client = await self._get_redis()
        result = await redis_client.eval(_RELEASE_SCRIPT, 1, self.key, run_id, token)

        if result in (0, 1):
            logger.debug(f"Released check lock for run_id: {run_id[:16]}")
            return True
        logger.warning(f"Check lock owned by another run, not released (run_id: {run_id[:16]})")
        return False

    async def get_lock_info(self) -> Optional[Dict[str, Any]]:
        """
        Get current lock information.

        Returns:
            Dict with run_id, started_at, ttl_seconds, or None if no lock
        """
        redis_client = await self._get_redis()
        value = await redis_client.get(self.key)
        if not value:
            return None
        ttl = await redis_client.ttl(self.key)

        try:
            data = json.loads(value)
        except json.JSONDecodeError:
            return {"raw_value": value, "ttl_seconds": ttl if ttl > 0 else None}
        return {
            "run_id": data.get("run_id"),
            "started_at": data.get("started_at"),
            "ttl_seconds": ttl if ttl > 0 else None,
        }
