import asyncio
import time
import logging
from collections import defaultdict

logger = logging.getLogger("RateLimiter")

class RateLimiter:
    """Sliding-window limiter for outbound Discord calls, keyed per action and channel."""

    def __init__(self, limits=None, clock=time.monotonic):
        # Buckets: "action:key" -> list of timestamps
        self.buckets = defaultdict(list)
        self.locks = defaultdict(asyncio.Lock)
        self.clock = clock

        # Limits: (count, seconds)
        self.limits = limits or {
            "send_message": (5, 5),      # Per Channel (console relay, status notices)
            "edit_message": (5, 5),      # Per Channel (announcement panels)
            "global": (45, 1)            # Safety net (Discord is 50/s)
        }

    def effective_limit(self, action):
        # Leave one slot open for Discord's own bookkeeping, unless the limit is tiny
        limit, _ = self.limits[action]
        return limit - 1 if limit > 1 else limit

    async def wait_for_slot(self, action, key):
        """
        Waits until a slot is available for the given action and key (e.g. channel_id).
        Non-global actions also consume a global slot.
        """
        if action not in self.limits:
            return

        if action != "global" and "global" in self.limits:
            await self._wait_for_bucket("global", "all")

        await self._wait_for_bucket(action, key)

    def _prune(self, lock_key, window, now):
        self.buckets[lock_key] = [t for t in self.buckets[lock_key] if now - t < window]

    async def _wait_for_bucket(self, action, key):
        _, window = self.limits[action]
        effective_limit = self.effective_limit(action)
        lock_key = f"{action}:{key}"

        async with self.locks[lock_key]:
            now = self.clock()
            self._prune(lock_key, window, now)

            while len(self.buckets[lock_key]) >= effective_limit:
                oldest = self.buckets[lock_key][0]
                wait_time = (oldest + window) - now + 0.05
                if wait_time > 0:
                    logger.warning(f"Rate Limit Reached for {action} on {key}. Sleeping {wait_time:.2f}s.")
                    await asyncio.sleep(wait_time)
                now = self.clock()
                self._prune(lock_key, window, now)

            self.buckets[lock_key].append(self.clock())

# Global Instance
limiter = RateLimiter()
