"""
Per-order locks held across an order's read-merge-commit.

Mutating order handlers are plain ``def`` routes, so FastAPI runs them in its
worker threads; the lock keeps two updates of the same order from reading the
same status history and overwriting each other's entry. It only covers one
process.
"""

import threading
from contextlib import contextmanager
from typing import Dict, List


class OrderLocks:
    def __init__(self):
        self._guard = threading.Lock()
        # order id -> [lock, number of holders and waiters]
        self._locks: Dict[int, List] = {}

    def __len__(self):
        return len(self._locks)

    @contextmanager
    def hold(self, order_id: int):
        with self._guard:
            entry = self._locks.setdefault(order_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[order_id]


order_locks = OrderLocks()
