"""Core data types shared by the probe engine, state machine and stores."""

import re
from dataclasses import asdict, dataclass, field, fields
from enum import Enum
from typing import Any, Optional


class StockStatus(str, Enum):
    """Confirmed stock status persisted per target."""
    OUT = "OUT"
    IN = "IN"


class ProbeStatus(str, Enum):
    """Outcome of a single probe."""
    OUT = "OUT"
    IN = "IN"
    ERROR = "ERROR"


@dataclass(frozen=True)
class Target:
    """A monitored order page with its fallback URLs and classification rules."""

    name: str
    urls: tuple[str, ...]
    must_contain_any: tuple[str, ...]
    out_of_stock_patterns: tuple[re.Pattern, ...]


@dataclass
class ProbeResult:
    """Result of probing one target."""

    status: ProbeStatus
    used_url: Optional[str]
    reason: str

    @property
    def ok(self) -> bool:
        """True when the probe reached a conclusive OUT/IN verdict."""
        return self.status != ProbeStatus.ERROR


@dataclass
class FetchResult:
    """Raw page fetch outcome; body is None on any failure."""

    body: Optional[str]
    status_code: int = 0


@dataclass
class NotifyResult:
    """Aggregated outcome of a fan-out send."""

    attempted: int = 0
    sent: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def any_sent(self) -> bool:
        return self.sent > 0


@dataclass
class TargetState:
    """Persisted per-target state record."""

    status: StockStatus = StockStatus.OUT
    in_since_ts: int = 0
    in_streak: int = 0
    err_streak: int = 0
    last_err_notify_ts: int = 0
    last_in_notify_attempt_ts: int = 0
    last_in_notify_ok_ts: int = 0
    last_used_url: Optional[str] = None
    last_reason: str = ""
    ts: int = 0

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> "TargetState":
        """
        Build a state record from stored JSON.

        Missing or malformed fields fall back to their zero defaults so that
        snapshots written by older versions keep loading.
        """
        if not isinstance(data, dict):
            return cls()

        state = cls()
        known = {f.name for f in fields(cls)}
        for key, value in data.items():
            if key not in known or value is None:
                continue
            if key == "status":
                try:
                    state.status = StockStatus(value)
                except ValueError:
                    pass
            elif key in ("last_used_url", "last_reason"):
                setattr(state, key, str(value))
            else:
                try:
                    setattr(state, key, int(value))
                except (TypeError, ValueError):
                    pass
        return state


StateMap = dict[str, TargetState]
