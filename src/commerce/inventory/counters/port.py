"""Counter store port (abstract interface).

Stock quantities, coupon usage counts and daily order sequences all live in
a counter store. Every conditional adjustment is a single atomic operation
in the store: callers never read a value and write it back.
"""

from abc import ABC, abstractmethod


class CounterStore(ABC):
    """Abstract atomic integer counter store."""

    @abstractmethod
    def get(self, key: str) -> int | None:
        """Return the counter value, or None when the key was never set."""
        ...

    @abstractmethod
    def set(self, key: str, value: int) -> None:
        ...

    @abstractmethod
    def increment(self, key: str, amount: int = 1, ceiling: int | None = None) -> int | None:
        """Add ``amount`` to the counter and return the new value.

        With a ``ceiling``, the increment is refused (counter untouched, None
        returned) when the result would exceed it. Missing keys count as 0.
        """
        ...

    @abstractmethod
    def decrement(self, key: str, amount: int = 1, floor: int | None = 0) -> int | None:
        """Subtract ``amount`` from the counter and return the new value.

        The decrement is refused (counter untouched, None returned) when the
        result would drop below ``floor``. ``floor=None`` allows any result.
        Missing keys count as 0.
        """
        ...

    @abstractmethod
    def next_in_sequence(self, key: str, floor: int = 0) -> int:
        """Return ``max(current, floor) + 1`` and store it as the new value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        ...

    @abstractmethod
    def flush(self) -> None:
        """Remove every counter owned by this store."""
        ...
