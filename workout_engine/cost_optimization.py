"""
Shared state for the model gateway: response cache, token-bucket rate limiter
and spend tracking.

Each object guards its own state with a lock and is meant to be created once
per process and injected into the gateway.
"""

import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from workout_engine.logging_config import get_logger


logger = get_logger(__name__)

# USD per one million tokens.
DEFAULT_PRICING = {
    "default": {"input": 3.0, "output": 15.0},
    "claude-sonnet-4-5": {"input": 3.0, "output": 15.0},
    "claude-haiku-4-5": {"input": 1.0, "output": 5.0},
    "claude-opus-4-1": {"input": 15.0, "output": 75.0},
}


class ResponseCache:
    """Thread-safe TTL cache; evicts the least-hit tenth of entries when full."""

    def __init__(self, ttl_seconds=86400, max_entries=1000, clock=time.monotonic):
        self.ttl = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._store = {}
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key):
        with self._lock:
            item = self._store.get(key)
            if item is None:
                self._misses += 1
                return None
            if self._clock() >= item["expires_at"]:
                self._store.pop(key, None)
                self._misses += 1
                return None
            item["hit_count"] += 1
            self._hits += 1
            return item["value"]

    def put(self, key, value, tokens=0):
        """Store a value; last writer wins on key collision."""
        with self._lock:
            if key not in self._store and len(self._store) >= self.max_entries:
                self._evict_locked()
            self._store[key] = {
                "value": value,
                "expires_at": self._clock() + self.ttl,
                "hit_count": 0,
                "tokens": tokens,
            }

    def _evict_locked(self):
        now = self._clock()
        expired = [k for k, item in self._store.items() if now >= item["expires_at"]]
        for key in expired:
            del self._store[key]
        self._evictions += len(expired)
        if len(self._store) < self.max_entries:
            return

        count = max(1, len(self._store) // 10)
        ranked = sorted(self._store.items(), key=lambda kv: (kv[1]["hit_count"], kv[1]["expires_at"]))
        for key, _item in ranked[:count]:
            del self._store[key]
        self._evictions += count

    def clear(self):
        with self._lock:
            self._store.clear()

    def stats(self):
        with self._lock:
            lookups = self._hits + self._misses
            return {
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
                "hit_rate": round(self._hits / lookups, 3) if lookups else 0.0,
                "tokens_saved": sum(item["tokens"] * item["hit_count"] for item in self._store.values()),
            }


class TokenBucket:
    """Token-bucket rate limiter with atomic take."""

    def __init__(self, capacity, refill_per_second, clock=time.monotonic, sleep=time.sleep):
        self.capacity = float(capacity)
        self.refill_per_second = float(refill_per_second)
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last_refill = clock()
        self._lock = threading.Lock()

    def _refill_locked(self):
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(self.capacity, self._tokens + elapsed * self.refill_per_second)
        self._last_refill = now

    def try_acquire(self, tokens=1):
        with self._lock:
            self._refill_locked()
            if self._tokens >= tokens:
                self._tokens -= tokens
                return True
            return False

    def wait_time(self, tokens=1):
        """Seconds until `tokens` would be available."""
        with self._lock:
            self._refill_locked()
            missing = tokens - self._tokens
            if missing <= 0:
                return 0.0
            if self.refill_per_second <= 0:
                return float("inf")
            return missing / self.refill_per_second

    def acquire(self, timeout=0.0, tokens=1):
        """
        Take tokens, waiting up to `timeout` seconds for a refill.

        Returns:
            True when the tokens were taken, False when the wait would exceed timeout
        """
        deadline = self._clock() + max(0.0, timeout)
        while True:
            if self.try_acquire(tokens):
                return True
            wait = self.wait_time(tokens)
            if self._clock() + wait > deadline:
                return False
            self._sleep(wait)

    def state(self):
        with self._lock:
            self._refill_locked()
            return {
                "capacity": self.capacity,
                "tokens": round(self._tokens, 3),
                "last_refill": self._last_refill,
            }


@dataclass
class BudgetReservation:
    reservation_id: str
    user_id: str
    window: str
    amount: float


class CostTracker:
    """
    Spend counters per budget window (one UTC day by default).

    Reservations make the budget check and the spend update one atomic step,
    so concurrent requests cannot jointly overshoot the budget.
    """

    def __init__(
        self,
        window_budget_usd=100.0,
        user_budget_usd=1.00,
        pricing=None,
        clock=time.time,
        window_format="%Y-%m-%d",
    ):
        self.window_budget_usd = float(window_budget_usd)
        self.user_budget_usd = None if user_budget_usd is None else float(user_budget_usd)
        self.pricing = dict(pricing or DEFAULT_PRICING)
        self._clock = clock
        self._window_format = window_format
        self._lock = threading.Lock()
        self._window = None
        self._spent = 0.0
        self._user_spent = {}
        self._reserved = {}

    def current_window(self):
        return datetime.fromtimestamp(self._clock(), timezone.utc).strftime(self._window_format)

    def _roll_window_locked(self):
        window = self.current_window()
        if window != self._window:
            if self._window is not None:
                logger.info(
                    "Budget window rolled over",
                    extra={"ctx_previous_window": self._window, "ctx_spent_usd": round(self._spent, 6)},
                )
            self._window = window
            self._spent = 0.0
            self._user_spent = {}
        return window

    def _model_pricing(self, model):
        if model in self.pricing:
            return self.pricing[model]
        for name, price in self.pricing.items():
            if name != "default" and model and str(model).startswith(name):
                return price
        return self.pricing.get("default", DEFAULT_PRICING["default"])

    def estimate_cost(self, model, input_tokens, output_tokens):
        price = self._model_pricing(model)
        return (input_tokens * price["input"] + output_tokens * price["output"]) / 1_000_000

    def _reserved_total_locked(self, window, user_id=None):
        return sum(
            r.amount
            for r in self._reserved.values()
            if r.window == window and (user_id is None or r.user_id == user_id)
        )

    def try_reserve(self, user_id, amount):
        """
        Reserve an estimated cost against the window and user budgets.

        Returns:
            BudgetReservation, or None when either budget would be exceeded
        """
        user_key = str(user_id or "anonymous")
        with self._lock:
            window = self._roll_window_locked()
            projected = self._spent + self._reserved_total_locked(window) + amount
            if projected > self.window_budget_usd:
                return None
            if self.user_budget_usd is not None:
                user_projected = (
                    self._user_spent.get(user_key, 0.0)
                    + self._reserved_total_locked(window, user_key)
                    + amount
                )
                if user_projected > self.user_budget_usd:
                    return None

            reservation = BudgetReservation(uuid.uuid4().hex, user_key, window, float(amount))
            self._reserved[reservation.reservation_id] = reservation
            return reservation

    def commit(self, reservation, actual_cost):
        """Replace a reservation with the real spend."""
        with self._lock:
            self._reserved.pop(reservation.reservation_id, None)
            self._roll_window_locked()
            self._spent += actual_cost
            self._user_spent[reservation.user_id] = self._user_spent.get(reservation.user_id, 0.0) + actual_cost

    def release(self, reservation):
        with self._lock:
            self._reserved.pop(reservation.reservation_id, None)

    def spent(self, user_id=None):
        with self._lock:
            self._roll_window_locked()
            if user_id is None:
                return self._spent
            return self._user_spent.get(str(user_id), 0.0)

    def summary(self, user_id=None):
        with self._lock:
            window = self._roll_window_locked()
            data = {
                "window": window,
                "spent_usd": round(self._spent, 6),
                "budget_usd": self.window_budget_usd,
                "remaining_usd": round(max(0.0, self.window_budget_usd - self._spent), 6),
                "reserved_usd": round(self._reserved_total_locked(window), 6),
            }
            if user_id is not None:
                user_spent = self._user_spent.get(str(user_id), 0.0)
                data["user_spent_usd"] = round(user_spent, 6)
                if self.user_budget_usd is not None:
                    data["user_remaining_usd"] = round(max(0.0, self.user_budget_usd - user_spent), 6)
            return data
