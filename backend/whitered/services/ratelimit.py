import threading
import time
from collections import defaultdict, deque
from typing import Callable, Deque, Dict, Optional


class SlidingWindowLimiter:
    """Per-origin sliding window counter for room creation and joins.

    Every attempt is recorded, including rejected ones, so a client that
    keeps hammering stays limited until it backs off for a full window.
    Stale origins are dropped every ``prune_every`` hits and on each reaper
    sweep.
    """

    def __init__(self, max_hits: int, window_sec: float, clock: Callable[[], float] = time.time, prune_every: int = 256):
        self.max_hits = max_hits
        self.window_sec = window_sec
        self.prune_every = prune_every
        self._clock = clock
        self._hits: Dict[str, Deque[float]] = defaultdict(deque)
        self._since_prune = 0
        self._lock = threading.Lock()

    def hit(self, key: Optional[str]) -> bool:
        """Record an attempt for ``key``; True when the key is over its quota."""
        if not key:
            return False
        now = self._clock()
        with self._lock:
            self._since_prune += 1
            if self._since_prune >= self.prune_every:
                self._prune_locked(now)
            hits = self._hits[key]
            while hits and now - hits[0] >= self.window_sec:
                hits.popleft()
            hits.append(now)
            return len(hits) > self.max_hits

    def prune(self) -> None:
        now = self._clock()
        with self._lock:
            self._prune_locked(now)

    def _prune_locked(self, now: float) -> None:
        self._since_prune = 0
        for key in [k for k, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_sec]:
            del self._hits[key]
