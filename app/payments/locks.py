"""
Per-key distributed locks for payment operations.

Mutual exclusion is always scoped to one key, never global:

    idempotency:<key>           payment submission
    payment:<provider tx id>    status transitions
    vendor:<account id>         vendor account updates
    webhook:<kind>:<event id>   webhook intake

Conditional writes under a lock go through payments.stores.RecordStore,
which compare-and-swaps on the record's version column.

Usage:
    from payments.locks import DistributedLock, payment_lock_key

    with DistributedLock(payment_lock_key("pi_123"), ttl=30):
        orchestrator.apply_transition("pi_123", "succeeded")
"""

from __future__ import annotations

import time
import uuid as uuid_module
from typing import TYPE_CHECKING

from django_redis import get_redis_connection

from payments.exceptions import LockAcquisitionError

if TYPE_CHECKING:
    from typing import Any

    from redis import Redis


# =============================================================================
# Lock Keys
# =============================================================================


def idempotency_lock_key(idempotency_key: str) -> str:
    return f"idempotency:{idempotency_key}"


def payment_lock_key(provider_transaction_id: str) -> str:
    return f"payment:{provider_transaction_id}"


def vendor_lock_key(provider_account_id: str) -> str:
    return f"vendor:{provider_account_id}"


def webhook_lock_key(provider_kind: str, provider_event_id: str) -> str:
    return f"webhook:{provider_kind}:{provider_event_id}"


# =============================================================================
# Distributed Lock
# =============================================================================


class DistributedLock:
    """
    Redis-based lock with a TTL and token ownership.

    The TTL frees keys held by crashed processes. Each acquisition stores a
    random token, and release/extend only act while that token is still
    the stored value, so a process can never release a lock that expired
    and was taken by someone else.

    Example:
        with DistributedLock("vendor:acct_123", ttl=30, timeout=5.0):
            registry.apply_snapshot(snapshot)

        lock = DistributedLock("webhook:connect:evt_1", blocking=False)
        try:
            lock.acquire()
        except LockAcquisitionError:
            ...  # another worker is handling this event

    Args:
        key: Lock identifier (prefixed with "lock:")
        ttl: Seconds before the lock expires on its own
        blocking: Wait for the lock instead of failing at once
        timeout: Maximum wait in seconds when blocking
    """

    # Delete only if we still own the key
    RELEASE_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("del", KEYS[1])
    else
        return 0
    end
    """

    # Reset the TTL only if we still own the key
    EXTEND_SCRIPT = """
    if redis.call("get", KEYS[1]) == ARGV[1] then
        return redis.call("expire", KEYS[1], ARGV[2])
    else
        return 0
    end
    """

    POLL_INTERVAL = 0.05

    def __init__(
        self,
        key: str,
        ttl: int = 30,
        blocking: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.key = f"lock:{key}"
        self.ttl = ttl
        self.blocking = blocking
        self.timeout = timeout
        self._token: str | None = None
        self._redis: Redis | None = None

    def _get_redis(self) -> Redis:
        if self._redis is None:
            self._redis = get_redis_connection("default")
        return self._redis

    def acquire(self) -> bool:
        """
        Acquire the lock.

        Returns:
            True once the lock is held

        Raises:
            LockAcquisitionError: Lock held elsewhere (non-blocking) or not
                freed within the timeout (blocking)
        """
        self._token = str(uuid_module.uuid4())
        redis = self._get_redis()

        if self.blocking:
            deadline = time.monotonic() + self.timeout
            while time.monotonic() < deadline:
                if self._try_acquire(redis):
                    return True
                time.sleep(self.POLL_INTERVAL)

            self._token = None
            raise LockAcquisitionError(
                f"Failed to acquire lock '{self.key}' within {self.timeout}s",
                details={"key": self.key, "timeout": self.timeout},
            )

        if not self._try_acquire(redis):
            self._token = None
            raise LockAcquisitionError(
                f"Lock '{self.key}' is already held",
                details={"key": self.key},
            )
        return True

    def _try_acquire(self, redis: Redis) -> bool:
        return bool(redis.set(self.key, self._token, nx=True, ex=self.ttl))

    def release(self) -> bool:
        """
        Release the lock if we hold it.

        Safe to call more than once; returns False when nothing was released.
        """
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(self.RELEASE_SCRIPT, 1, self.key, self._token)
        self._token = None
        return bool(result)

    def extend(self, ttl: int | None = None) -> bool:
        """Reset the remaining TTL (defaults to the original TTL)."""
        if self._token is None:
            return False

        redis = self._get_redis()
        result = redis.eval(
            self.EXTEND_SCRIPT, 1, self.key, self._token, ttl or self.ttl
        )
        return bool(result)

    @property
    def is_held(self) -> bool:
        return self._token is not None

    def __enter__(self) -> DistributedLock:
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> bool:
        self.release()
        return False


__all__ = [
    "DistributedLock",
    "idempotency_lock_key",
    "payment_lock_key",
    "vendor_lock_key",
    "webhook_lock_key",
]
