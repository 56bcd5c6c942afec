"""
Per-Account Lock Registry

Serializes balance-touching operations on the same account. Operations that
touch several accounts acquire every lock in ascending account-id order so
two opposite-direction transfers cannot deadlock.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from .errors import TransientLockTimeout
from .logging_config import get_logger


class AccountLocks:
    """Lazily created mutex per account id with bounded waiting"""

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._locks: Dict[int, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self.logger = get_logger("kodbank.locks")

    def _lock_for(self, account_id: int) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[account_id] = lock
            return lock

    @contextmanager
    def hold(self, *account_ids: int) -> Iterator[None]:
        """
        Hold the locks of all given accounts.

        Raises:
            TransientLockTimeout: If any lock is not obtained within the timeout;
                locks already taken are released first
        """
        ordered = sorted(set(account_ids))
        acquired: List[threading.Lock] = []
        try:
            for account_id in ordered:
                lock = self._lock_for(account_id)
                if not lock.acquire(timeout=self.timeout):
                    self.logger.warning(f"Lock timeout on account {account_id}")
                    raise TransientLockTimeout()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
