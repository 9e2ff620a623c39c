"""Check orchestration: probe every target, apply transitions, persist one snapshot."""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence, Tuple
from uuid import uuid4

import httpx
import redis.asyncio as redis

from src import metrics
from src.config import Settings
from src.detect.probe import Sleep, probe_target
from src.detect.state_machine import TransitionPolicy, apply_outcome
from src.ingest.http_client import FetchPage, PageFetcher
from src.logging_config import current_run_id
from src.models import StateMap, Target, TargetState
from src.notify.channels import Channel, build_channels
from src.state.store import StateStore, build_state_store
from src.targets import get_targets
from src.worker.check_lock import CheckLockManager

logger = logging.getLogger(__name__)


def _iso(now: int) -> str:
    return datetime.fromtimestamp(now, timezone.utc).isoformat()


def format_summary(changes: Sequence[str], now: int) -> str:
    if changes:
        return f"[{_iso(now)}] State changes:\n" + "\n".join(changes)
    return f"[{_iso(now)}] OK - no changes"


def prune_state(state: StateMap, targets: Sequence[Target]) -> StateMap:
    """Drop entries for targets that are no longer configured."""
    active = {t.name for t in targets}
    return {name: record for name, record in state.items() if name in active}


async def run_check(
    targets: Sequence[Target],
    prior_state: StateMap,
    now: int,
    fetch: FetchPage,
    channels: Sequence[Channel],
    policy: TransitionPolicy,
    timeout_ms: int,
    confirm_delay_ms: int,
    sleep: Sleep = asyncio.sleep,
) -> Tuple[StateMap, str]:
    """
    Run one full check cycle over all targets, strictly in list order.

    A failure while handling one target is logged and leaves that target's
    prior state untouched; it never aborts the run.

    Returns:
        Tuple of (new state map pruned to the active targets, summary text)
    """
    state: StateMap = dict(prior_state)
    changes: List[str] = []

    for target in targets:
        prior = state.get(target.name) or TargetState()
        started = time.monotonic()
        try:
            outcome = await probe_target(target, fetch, timeout_ms, confirm_delay_ms, sleep=sleep)
            metrics.record_probe(target.name, outcome.status.value, time.monotonic() - started)
            new_state, change = await apply_outcome(
                target.name, prior, outcome, now, policy, channels
            )
        except Exception as e:
            logger.error(
                f"Check failed for {target.name}: {e}",
                exc_info=True,
                extra={"target": target.name},
            )
            state[target.name] = prior
            continue

        logger.debug(
            f"{target.name}: {outcome.status.value} ({outcome.reason}) "
            f"status={new_state.status.value} in_streak={new_state.in_streak} "
            f"err_streak={new_state.err_streak}"
        )
        state[target.name] = new_state
        if change:
            changes.append(change)

    return prune_state(state, targets), format_summary(changes, now)


class RestockMonitor:
    """
    Service wrapper that owns the collaborators of a check run.

    One run loads the snapshot, checks every target and saves the whole
    snapshot once. Runs are single-flight within the process, and across
    processes when a Redis lock manager is configured.
    """

    def __init__(
        self,
        settings: Settings,
        targets: Sequence[Target],
        store: StateStore,
        fetcher: PageFetcher,
        channels: Sequence[Channel],
        lock_manager: Optional[CheckLockManager] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.targets = list(targets)
        self.store = store
        self.fetcher = fetcher
        self.channels = list(channels)
        self.lock_manager = lock_manager
        self.policy = TransitionPolicy.from_settings(settings)
        self._http_client = http_client
        self._clock = clock
        self._sleep = sleep
        self._run_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RestockMonitor":
        """Wire a monitor from application settings."""
        http_client = httpx.AsyncClient(timeout=float(settings.timeout_sec))
        lock_manager = None
        if settings.check_lock_enabled and settings.state_backend.strip().lower() == "redis":
            lock_manager = CheckLockManager(settings.redis_url)

        monitor = cls(
            settings=settings,
            targets=get_targets(settings.targets_json),
            store=build_state_store(settings),
            fetcher=PageFetcher(settings.user_agent),
            channels=build_channels(settings, http_client),
            lock_manager=lock_manager,
            http_client=http_client,
        )
        logger.info(
            f"Monitoring {len(monitor.targets)} targets with {len(monitor.channels)} channels"
        )
        return monitor

    async def close(self):
        """Release network resources."""
        await self.fetcher.close()
        await self.store.close()
        if self.lock_manager:
            await self.lock_manager.close()
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    def _now(self) -> int:
        return int(self._clock())

    async def run_check(self) -> str:
        """
        Trigger one full check cycle.

        Returns:
            Summary text; a "skipped" line if another run holds the lock
        """
        if self._run_lock.locked():
            return self._skipped()

        async with self._run_lock:
            run_id = uuid4().hex
            run_token = current_run_id.set(run_id)
            try:
                return await self._locked_run(run_id)
            finally:
                current_run_id.reset(run_token)

    async def _locked_run(self, run_id: str) -> str:
        if self.lock_manager is None:
            return await self._run_once()

        token = await self.lock_manager.acquire_lock(
            run_id, ttl_seconds=self.settings.check_lock_ttl_seconds
        )
        if not token:
            return self._skipped()
        try:
            return await self._run_once()
        finally:
            await self._release_lock(run_id, token)

    async def _release_lock(self, run_id: str, token: str) -> None:
        try:
            await self.lock_manager.release_lock(run_id, token)
        except redis.RedisError as e:
            # Lock expires on its own TTL
            logger.warning(f"Failed to release check lock for run_id {run_id[:16]}: {e}")

    def _skipped(self) -> str:
        metrics.record_check_run("skipped")
        summary = f"[{_iso(self._now())}] SKIPPED - another check is running"
        logger.info(summary)
        return summary

    async def _run_once(self) -> str:
        try:
            prior_state = await self.store.load()
            new_state, summary = await run_check(
                self.targets,
                prior_state,
                self._now(),
                self.fetcher.fetch_page,
                self.channels,
                self.policy,
                self.settings.timeout_ms,
                self.settings.confirm_delay_ms,
                sleep=self._sleep,
            )
            await self.store.save(new_state)
        except Exception:
            metrics.record_check_run("error")
            raise

        metrics.record_check_run("success")
        logger.info(summary)
        return summary

    async def get_status(self) -> StateMap:
        """
        Read-only snapshot of the configured targets' state.

        Targets never probed yet are reported with default state.
        """
        stored = await self.store.load()
        return {t.name: stored.get(t.name) or TargetState() for t in self.targets}
