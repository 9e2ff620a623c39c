"""Per-target state machine: confirmed OUT/IN status, error streaks and alert retries."""

import logging
from dataclasses import dataclass, replace
from typing import Optional, Sequence, Tuple

from src import metrics
from src.config import Settings
from src.models import ProbeResult, ProbeStatus, StockStatus, TargetState
from src.notify.channels import Channel
from src.notify.fanout import notify_all
from src.notify.formatters import format_error_alert, format_restock_alert

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionPolicy:
    """Thresholds that govern confirmation and alerting."""

    in_confirmations_required: int = 1
    error_streak_notify_threshold: int = 5
    error_notify_cooldown_sec: int = 1800
    alert_timezone: str = "Asia/Shanghai"

    @classmethod
    def from_settings(cls, settings: Settings) -> "TransitionPolicy":
        return cls(
            in_confirmations_required=settings.in_confirmations_required,
            error_streak_notify_threshold=settings.error_streak_notify_threshold,
            error_notify_cooldown_sec=settings.error_notify_cooldown_sec,
            alert_timezone=settings.alert_timezone,
        )


async def _send_restock_alert(
    name: str,
    state: TargetState,
    url: Optional[str],
    now: int,
    policy: TransitionPolicy,
    channels: Sequence[Channel],
) -> None:
    title, body = format_restock_alert(
        name,
        url,
        state.in_streak,
        policy.in_confirmations_required,
        now,
        policy.alert_timezone,
    )
    result = await notify_all(channels, title, body, kind="restock")
    state.last_in_notify_attempt_ts = now
    if result.any_sent:
        state.last_in_notify_ok_ts = now
    else:
        logger.warning(f"{name}: restock alert not delivered on any channel, will retry")


async def apply_outcome(
    name: str,
    prior: TargetState,
    outcome: ProbeResult,
    now: int,
    policy: TransitionPolicy,
    channels: Sequence[Channel],
) -> Tuple[TargetState, Optional[str]]:
    """
    Apply one probe outcome to a target's prior state.

    Rules:
    - ERROR keeps the confirmed status (breaking any unconfirmed IN streak)
      and grows the error streak; an error
      alert goes out once the streak reaches the threshold and the cooldown
      since the last delivered error alert has elapsed.
    - OUT is trusted immediately: counters reset and IN -> OUT is reported.
    - IN only flips the status after in_confirmations_required consecutive
      IN outcomes. While IN, a restock alert that never reached any channel
      is resent on every run until one accepts it.

    Args:
        name: Target name
        prior: Prior state (not mutated)
        outcome: Probe result for this run
        now: Current Unix time in seconds
        policy: Confirmation and alerting thresholds
        channels: Notification channels

    Returns:
        Tuple of (new state, change event or None)
    """
    state = replace(prior)
    change: Optional[str] = None

    if outcome.status == ProbeStatus.ERROR:
        state.err_streak += 1
        # An unconfirmed IN run must be consecutive
        if prior.status == StockStatus.OUT:
            state.in_streak = 0
        cooldown_elapsed = now - state.last_err_notify_ts >= policy.error_notify_cooldown_sec
        if state.err_streak >= policy.error_streak_notify_threshold and cooldown_elapsed:
            title, body = format_error_alert(
                name,
                outcome.reason,
                state.err_streak,
                outcome.used_url,
                now,
                policy.alert_timezone,
            )
            result = await notify_all(channels, title, body, kind="error")
            if result.any_sent:
                state.last_err_notify_ts = now

    elif outcome.status == ProbeStatus.OUT:
        state.err_streak = 0
        state.in_streak = 0
        state.in_since_ts = 0
        if prior.status == StockStatus.IN:
            change = f"{name}: IN -> OUT"
            metrics.record_transition(name, "out")
        state.status = StockStatus.OUT

    elif outcome.status == ProbeStatus.IN:
        state.err_streak = 0
        if prior.status == StockStatus.OUT:
            state.in_streak += 1
            if state.in_streak >= policy.in_confirmations_required:
                state.status = StockStatus.IN
                state.in_since_ts = now
                await _send_restock_alert(name, state, outcome.used_url, now, policy, channels)
                change = f"{name}: OUT -> IN"
                metrics.record_transition(name, "in")
            else:
                logger.info(
                    f"{name}: in-stock signal {state.in_streak}/"
                    f"{policy.in_confirmations_required}, waiting for confirmation"
                )
        else:
            state.in_streak = max(state.in_streak, policy.in_confirmations_required)
            if channels and state.last_in_notify_ok_ts < state.in_since_ts:
                logger.info(f"{name}: retrying undelivered restock alert")
                await _send_restock_alert(name, state, outcome.used_url, now, policy, channels)

    state.last_used_url = outcome.used_url
    state.last_reason = outcome.reason
    state.ts = now
    metrics.update_error_streak(name, state.err_streak)
    return state, change
