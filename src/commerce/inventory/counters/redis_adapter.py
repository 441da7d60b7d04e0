"""Redis-backed counter store for multi-process deployments.

Conditional adjustments run as server-side Lua scripts, so the bound check
and the write happen as one atomic step in Redis.
"""

import redis

from commerce.inventory.counters.port import CounterStore

_INCREMENT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local result = current + tonumber(ARGV[1])
if ARGV[2] ~= '' and result > tonumber(ARGV[2]) then
    return nil
end
redis.call('SET', KEYS[1], result)
return result
"""

_DECREMENT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local result = current - tonumber(ARGV[1])
if ARGV[2] ~= '' and result < tonumber(ARGV[2]) then
    return nil
end
redis.call('SET', KEYS[1], result)
return result
"""

_NEXT_IN_SEQUENCE = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
local floor = tonumber(ARGV[1])
if floor > current then
    current = floor
end
local result = current + 1
redis.call('SET', KEYS[1], result)
return result
"""


def _bound(value: int | None) -> str:
    return "" if value is None else str(int(value))


class RedisCounterStore(CounterStore):
    def __init__(self, url: str, namespace: str = "commerce") -> None:
        self.client = redis.Redis.from_url(url, decode_responses=True)
        self.namespace = namespace
        self._increment = self.client.register_script(_INCREMENT)
        self._decrement = self.client.register_script(_DECREMENT)
        self._next_in_sequence = self.client.register_script(_NEXT_IN_SEQUENCE)

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> int | None:
        value = self.client.get(self._key(key))
        return None if value is None else int(value)

    def set(self, key: str, value: int) -> None:
        self.client.set(self._key(key), int(value))

    def increment(self, key: str, amount: int = 1, ceiling: int | None = None) -> int | None:
        result = self._increment(keys=[self._key(key)], args=[int(amount), _bound(ceiling)])
        return None if result is None else int(result)

    def decrement(self, key: str, amount: int = 1, floor: int | None = 0) -> int | None:
        result = self._decrement(keys=[self._key(key)], args=[int(amount), _bound(floor)])
        return None if result is None else int(result)

    def next_in_sequence(self, key: str, floor: int = 0) -> int:
        return int(self._next_in_sequence(keys=[self._key(key)], args=[int(floor)]))

    def delete(self, key: str) -> None:
        self.client.delete(self._key(key))

    def flush(self) -> None:
        for key in self.client.scan_iter(match=f"{self.namespace}:*"):
            self.client.delete(key)
