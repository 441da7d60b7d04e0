"""In-process counter store for development and testing.

A single lock serialises every operation, which makes each conditional
adjustment atomic across the threads of one process.
"""

import threading

from commerce.inventory.counters.port import CounterStore


class MemoryCounterStore(CounterStore):
    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> int | None:
        with self._lock:
            return self._values.get(key)

    def set(self, key: str, value: int) -> None:
        with self._lock:
            self._values[key] = int(value)

    def increment(self, key: str, amount: int = 1, ceiling: int | None = None) -> int | None:
        with self._lock:
            result = self._values.get(key, 0) + amount
            if ceiling is not None and result > ceiling:
                return None
            self._values[key] = result
            return result

    def decrement(self, key: str, amount: int = 1, floor: int | None = 0) -> int | None:
        with self._lock:
            result = self._values.get(key, 0) - amount
            if floor is not None and result < floor:
                return None
            self._values[key] = result
            return result

    def next_in_sequence(self, key: str, floor: int = 0) -> int:
        with self._lock:
            result = max(self._values.get(key, 0), floor) + 1
            self._values[key] = result
            return result

    def delete(self, key: str) -> None:
        with self._lock:
            self._values.pop(key, None)

    def flush(self) -> None:
        with self._lock:
            self._values.clear()
