"""Counter store factory.

Provides get_counter_store() / set_counter_store() to swap implementations:
- MemoryCounterStore for development and testing
- RedisCounterStore when COMMERCE_REDIS_URL is set
"""

import os

from commerce.inventory.counters.memory_adapter import MemoryCounterStore
from commerce.inventory.counters.port import CounterStore

_current_store: CounterStore | None = None


def get_counter_store() -> CounterStore:
    """Return the active counter store, building it from the environment on first use."""
    global _current_store
    if _current_store is None:
        redis_url = os.getenv("COMMERCE_REDIS_URL")
        if redis_url:
            from commerce.inventory.counters.redis_adapter import RedisCounterStore

            _current_store = RedisCounterStore(redis_url)
        else:
            _current_store = MemoryCounterStore()
    return _current_store


def set_counter_store(store: CounterStore) -> None:
    """Override the active counter store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_counter_store() -> None:
    global _current_store
    _current_store = None
