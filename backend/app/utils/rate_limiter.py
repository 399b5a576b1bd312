"""
Initiation Throttle — Memory-based fixed-window limiter for STK pushes.

Every accepted initiation prompts the customer's handset, so pushes are
counted per target phone number as well as per client IP: switching
networks does not let one client flood a phone with prompts. Per-process only.
"""
import time
from typing import Callable, Dict, Optional, Tuple

from fastapi import HTTPException


class RateLimiter:
    """At most `requests` hits per key within `window` seconds."""

    def __init__(self, requests: int, window: int, clock: Callable[[], float] = time.time):
        self.requests = requests
        self.window = window
        self.clock = clock
        # {key: (window_start, count)}
        self._windows: Dict[str, Tuple[float, int]] = {}

    def reset(self):
        self._windows.clear()

    def __len__(self):
        return len(self._windows)

    def hit(self, *keys: Optional[str]) -> None:
        """Count one request against every key; raise 429 if any is exhausted.

        Nothing is counted when the request is refused. None keys are skipped.
        """
        now = self.clock()
        self._prune(now)
        keys = [k for k in keys if k]

        for key in keys:
            window_start, count = self._windows.get(key, (now, 0))
            if count >= self.requests:
                retry_in = int(self.window - (now - window_start))
                raise HTTPException(
                    status_code=429,
                    detail=f"Too many payment requests. Try again in {max(retry_in, 1)} seconds.",
                )

        for key in keys:
            window_start, count = self._windows.get(key, (now, 0))
            self._windows[key] = (window_start, count + 1)

    def _prune(self, now: float) -> None:
        expired = [k for k, (start, _) in self._windows.items() if now - start >= self.window]
        for key in expired:
            del self._windows[key]


def initiation_keys(phone: Optional[str], client_ip: Optional[str]) -> Tuple[Optional[str], str]:
    """Throttle keys for one initiation: the canonical phone and the client IP."""
    return (
        f"phone:{phone}" if phone else None,
        f"ip:{client_ip or 'unknown'}",
    )
