"""
Redis-backed circuit breaker for the content generator's upstream API.

State for a breaker lives in one Redis hash, `breaker:{name}`:
    state         closed | open | half_open
    failures      consecutive failures since the last success
    opened_at     unix time the circuit last opened
    total_success / total_failure / last_error   (health counters)

CLOSED passes calls through; after `failure_threshold` consecutive failures the
circuit is OPEN and calls fail fast with CircuitOpenError; once `reset_timeout`
seconds have passed one probe call is let through (HALF_OPEN).

If Redis itself is unreachable the breaker stays out of the way (fail-open).
"""
import logging
import time

from redis.exceptions import RedisError

logger = logging.getLogger('services.circuit_breaker')

CLOSED = 'closed'
OPEN = 'open'
HALF_OPEN = 'half_open'


class CircuitOpenError(Exception):
    """Raised when calling through an open circuit breaker."""

    def __init__(self, name, retry_after=None):
        self.name = name
        self.retry_after = retry_after
        super().__init__(f"Circuit breaker '{name}' is OPEN — service unavailable")


class CircuitBreaker:
    """
    Usage:
        cb = CircuitBreaker('openai', redis_client, failure_threshold=5, reset_timeout=60)
        response = cb.call(client.chat.completions.create, model=..., messages=...)
    """

    def __init__(self, name, redis_client, failure_threshold=5, reset_timeout=60):
        self.name = name
        self.redis = redis_client
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout

    @property
    def key(self):
        return f'breaker:{self.name}'

    def _snapshot(self):
        try:
            return self.redis.hgetall(self.key) or {}
        except RedisError:
            logger.debug("Redis unavailable, breaker '%s' treated as closed", self.name)
            return {}

    def _retry_after(self, snapshot):
        opened_at = float(snapshot.get('opened_at') or 0)
        return max(0.0, self.reset_timeout - (time.time() - opened_at))

    @property
    def state(self):
        snapshot = self._snapshot()
        state = snapshot.get('state', CLOSED)
        if state == OPEN and self._retry_after(snapshot) <= 0:
            return HALF_OPEN
        return state

    @property
    def failure_count(self):
        return int(self._snapshot().get('failures') or 0)

    def call(self, func, *args, **kwargs):
        """Execute func through the breaker; re-raises whatever func raises."""
        snapshot = self._snapshot()
        if snapshot.get('state') == OPEN:
            retry_after = self._retry_after(snapshot)
            if retry_after > 0:
                raise CircuitOpenError(self.name, retry_after=retry_after)

        try:
            result = func(*args, **kwargs)
        except Exception as e:
            self._on_failure(e)
            raise
        self._on_success()
        return result

    def _on_success(self):
        try:
            self.redis.hset(self.key, mapping={'state': CLOSED, 'failures': 0})
            self.redis.hincrby(self.key, 'total_success', 1)
        except RedisError:
            pass

    def _on_failure(self, error):
        try:
            failures = self.redis.hincrby(self.key, 'failures', 1)
            self.redis.hincrby(self.key, 'total_failure', 1)
            self.redis.hset(self.key, 'last_error', str(error)[:200])
            if failures >= self.failure_threshold:
                self.redis.hset(self.key, mapping={'state': OPEN, 'opened_at': time.time()})
                logger.warning("Circuit '%s' OPENED after %d failures: %s", self.name, failures, error)
            else:
                logger.info("Circuit '%s' failure %d/%d: %s",
                            self.name, failures, self.failure_threshold, error)
        except RedisError:
            pass

    def reset(self):
        """Manually close the circuit; health counters are kept."""
        try:
            self.redis.hset(self.key, mapping={'state': CLOSED, 'failures': 0})
            self.redis.hdel(self.key, 'opened_at')
            logger.info("Circuit '%s' manually reset to CLOSED", self.name)
        except RedisError as e:
            logger.error("Failed to reset circuit '%s': %s", self.name, e)

    def get_health(self):
        snapshot = self._snapshot()
        return {
            'name': self.name,
            'state': self.state,
            'failure_count': int(snapshot.get('failures') or 0),
            'failure_threshold': self.failure_threshold,
            'reset_timeout': self.reset_timeout,
            'total_success': int(snapshot.get('total_success') or 0),
            'total_failure': int(snapshot.get('total_failure') or 0),
            'last_error': snapshot.get('last_error', ''),
        }


# ── Registry ──────────────────────────────────────────────────────────────

_registry = {}


def get_breaker(name, redis_client=None, **kwargs):
    """Get or create a named circuit breaker (one per name)."""
    if name not in _registry:
        if redis_client is None:
            from adloop.extensions import redis_client as rc
            redis_client = rc
        _registry[name] = CircuitBreaker(name, redis_client, **kwargs)
    return _registry[name]


def get_all_breakers():
    return dict(_registry)


def init_breakers(redis_client):
    """Register the breakers for every external service the app calls."""
    breakers = {
        'openai': CircuitBreaker('openai', redis_client, failure_threshold=5, reset_timeout=60),
    }
    _registry.update(breakers)
    return breakers
