from enum import Enum
import logging
import time
from typing import Callable, Protocol

from domain.models import Tier


logger = logging.getLogger(__name__)


class DenialReason(Enum):
    RATE_LIMIT = "rate_limit"
    OTHER = "other"


class Decision:
    def __init__(self, *, allowed: bool, reason: DenialReason | None = None) -> None:
        self.allowed = allowed
        self.reason = reason

    def __repr__(self) -> str:
        return f"<Decision(allowed={self.allowed}, reason={self.reason})>"

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason) -> "Decision":
        return cls(allowed=False, reason=reason)

    @property
    def is_rate_limit(self) -> bool:
        return self.reason == DenialReason.RATE_LIMIT


class EntitlementGate(Protocol):
    async def check(self, user_id: str, requested: int, tier: Tier) -> Decision:
        ...


class QuotaGate:
    """Fixed-window quota per user and tier, held in process.

    `check` never awaits between reading and updating a window, so the
    accounting is atomic on the event loop.
    Expired windows are dropped once per window length.
    """

    def __init__(
        self,
        *,
        free_quota: int = 5,
        pro_quota: int = 100,
        window_seconds: float = 60 * 60 * 24 * 30,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.quotas = {Tier.free: free_quota, Tier.pro: pro_quota}
        self.window_seconds = window_seconds
        self.clock = clock
        # (tier, user id) -> (window start, units used)
        self._windows: dict[tuple[Tier, str], tuple[float, int]] = {}
        self._pruned_at: float | None = None

    async def check(self, user_id: str, requested: int, tier: Tier) -> Decision:
        quota = self.quotas[tier]
        if requested < 1 or requested > quota:
            logger.warning("Refusing %s units for %s", requested, user_id)
            return Decision.deny(DenialReason.OTHER)

        now = self.clock()
        self._prune(now)
        start, used = self._windows.get((tier, user_id), (now, 0))
        if now - start >= self.window_seconds:
            start, used = now, 0

        if used + requested > quota:
            logger.info("Quota of %s reached for %s (%s)", quota, user_id, tier.value)
            return Decision.deny(DenialReason.RATE_LIMIT)

        self._windows[(tier, user_id)] = (start, used + requested)
        return Decision.allow()

    def _prune(self, now: float) -> None:
        if self._pruned_at is not None and now - self._pruned_at < self.window_seconds:
            return
        self._pruned_at = now
        self._windows = {
            key: (start, used)
            for key, (start, used) in self._windows.items()
            if now - start < self.window_seconds
        }

    def __len__(self) -> int:
        return len(self._windows)
