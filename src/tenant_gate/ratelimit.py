"""Fixed-window rate limiting partitioned by client identity.

Counting is delegated to ``limits`` (the engine behind slowapi) with an
in-process ``MemoryStorage``. Each named policy becomes one
``RateLimitItem`` and every hit is keyed on ``(policy, client_key)``.
"""

import math
import time
from dataclasses import dataclass
from typing import Optional

from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter as FixedWindowStrategy

DEFAULT_POLICY = "general"


@dataclass
class RateLimitDecision:
    allowed: bool
    policy: str
    remaining: int
    retry_after: int = 0


class FixedWindowRateLimiter:
    """Applies named ``(limit, window_seconds)`` policies per client key."""

    def __init__(
        self,
        policies: dict[str, tuple[int, int]],
        path_policies: Optional[dict[str, str]] = None,
        storage: Optional[Storage] = None,
    ):
        if DEFAULT_POLICY not in policies:
            raise ValueError(f"Rate limit policies must define '{DEFAULT_POLICY}'")
        self.items: dict[str, RateLimitItem] = {
            name: RateLimitItemPerSecond(limit, window)
            for name, (limit, window) in policies.items()
        }
        self.path_policies = dict(path_policies or {})
        self.storage = storage or MemoryStorage()
        self._strategy = FixedWindowStrategy(self.storage)

    def policy_for_path(self, path: str) -> str:
        # Longest prefix wins so "/api/auth/admin" can override "/api/auth".
        for prefix in sorted(self.path_policies, key=len, reverse=True):
            if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
                return self.path_policies[prefix]
        return DEFAULT_POLICY

    def item_for(self, policy: str) -> RateLimitItem:
        return self.items.get(policy, self.items[DEFAULT_POLICY])

    def hit(self, policy: str, client_key: str) -> RateLimitDecision:
        item = self.item_for(policy)
        allowed = self._strategy.hit(item, policy, client_key)
        stats = self._strategy.get_window_stats(item, policy, client_key)
        if allowed:
            return RateLimitDecision(True, policy, stats.remaining)
        retry_after = max(1, math.ceil(stats.reset_time - time.time()))
        return RateLimitDecision(False, policy, 0, retry_after)

    def reset(self) -> None:
        self.storage.reset()
