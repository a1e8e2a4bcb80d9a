"""In-memory per-subject guards for inbound traffic: flood limit and delete confirmation."""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

WARN_INTERVAL_SECONDS = 10


@dataclass
class RateDecision:
    allowed: bool
    should_warn: bool = False


@dataclass
class _RateState:
    timestamps: List[float] = field(default_factory=list)
    blocked_until: float = 0.0
    last_warned_at: Optional[float] = None


class InboundGuard:
    """Sliding-window rate limit with cooldown, plus a two-step delete confirmation."""

    def __init__(
        self,
        max_messages: int = 20,
        window_seconds: int = 60,
        cooldown_seconds: int = 120,
        delete_window_seconds: int = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_messages = max_messages
        self.window_seconds = window_seconds
        self.cooldown_seconds = cooldown_seconds
        self.delete_window_seconds = delete_window_seconds
        self._clock = clock
        self._rates: Dict[str, _RateState] = {}
        self._delete_requests: Dict[str, float] = {}
        self._last_pruned_at = float("-inf")

    @classmethod
    def from_settings(cls, settings) -> "InboundGuard":
        return cls(
            max_messages=settings.RATE_LIMIT_MAX_PER_MINUTE,
            window_seconds=settings.RATE_LIMIT_WINDOW_SECONDS,
            cooldown_seconds=settings.RATE_LIMIT_COOLDOWN_SECONDS,
            delete_window_seconds=settings.DELETE_CONFIRM_WINDOW_SECONDS,
        )

    def _warn_once(self, state: _RateState, now: float) -> bool:
        if state.last_warned_at is not None and now - state.last_warned_at < WARN_INTERVAL_SECONDS:
            return False
        state.last_warned_at = now
        return True

    def _prune(self, now: float) -> None:
        """Forget senders whose window is empty and whose cooldown is over; at most once per window."""
        if now - self._last_pruned_at < self.window_seconds:
            return
        self._last_pruned_at = now
        idle = [
            wa_id
            for wa_id, state in self._rates.items()
            if now >= state.blocked_until and all(now - ts >= self.window_seconds for ts in state.timestamps)
        ]
        for wa_id in idle:
            del self._rates[wa_id]

    def check_rate(self, wa_id: str) -> RateDecision:
        if self.max_messages <= 0:
            return RateDecision(allowed=True)

        now = self._clock()
        self._prune(now)
        state = self._rates.setdefault(wa_id, _RateState())
        if now < state.blocked_until:
            return RateDecision(allowed=False, should_warn=self._warn_once(state, now))

        state.timestamps = [ts for ts in state.timestamps if now - ts < self.window_seconds]
        state.timestamps.append(now)
        if len(state.timestamps) > self.max_messages:
            state.blocked_until = now + self.cooldown_seconds
            state.timestamps = []
            return RateDecision(allowed=False, should_warn=self._warn_once(state, now))
        return RateDecision(allowed=True)

    def confirm_delete(self, wa_id: str) -> bool:
        """First call arms the confirmation, a second call inside the window confirms it."""
        now = self._clock()
        requested_at = self._delete_requests.get(wa_id)
        if requested_at is not None and now - requested_at <= self.delete_window_seconds:
            del self._delete_requests[wa_id]
            return True
        self._delete_requests[wa_id] = now
        return False

    def forget(self, wa_id: str) -> None:
        self._rates.pop(wa_id, None)
        self._delete_requests.pop(wa_id, None)
