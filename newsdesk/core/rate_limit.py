import time
import hashlib
import threading


class RateLimiter:
    """
    In-memory sliding-window limiter keyed by client IP.

    State is per process: {ip_hash: [timestamp, ...]}. Clients whose window
    has emptied are dropped, and a full sweep runs every sweep_every calls.
    """

    def __init__(self, max_requests, window_seconds, clock=time.time, sweep_every=1000):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_every = sweep_every
        self._clock = clock
        self._hits = {}
        self._calls = 0
        self._lock = threading.Lock()

    @staticmethod
    def _key(ip):
        return hashlib.sha256((ip or 'unknown').encode()).hexdigest()[:16]

    def _sweep(self, now):
        stale = [key for key, hits in self._hits.items() if not hits or now - hits[-1] >= self.window_seconds]
        for key in stale:
            del self._hits[key]

    def is_limited(self, ip):
        """Record a hit for ip. Returns True if the hit is over the limit."""
        now = self._clock()
        ip_hash = self._key(ip)

        with self._lock:
            self._calls += 1
            if self._calls % self.sweep_every == 0:
                self._sweep(now)

            # Clean old entries
            recent = [t for t in self._hits.pop(ip_hash, []) if now - t < self.window_seconds]

            if len(recent) >= self.max_requests:
                self._hits[ip_hash] = recent
                return True

            recent.append(now)
            self._hits[ip_hash] = recent
            return False

    def sweep(self):
        """Drop every client with no hits inside the window"""
        with self._lock:
            self._sweep(self._clock())

    def tracked_clients(self):
        with self._lock:
            return len(self._hits)

    def reset(self):
        with self._lock:
            self._hits.clear()
            self._calls = 0
