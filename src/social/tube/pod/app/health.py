import asyncio


class HealthGauge:
    """
    Failure counter backing the readiness check.

    Unexpected errors (not expected access failures such as a rejected token) bump the
    counter. A background task decays it by one on every tick. When a burst of failures
    pushes the counter over the threshold, is_healthy returns False and /internal/ready
    answers 503 until the burst has decayed.
    """

    def __init__(self, value: int = 0, health_threshold: int = 100) -> None:
        self._value = value
        self._health_threshold = health_threshold
        self._lock = asyncio.Lock()

    async def record_failure(self, weight: int = 1) -> int:
        async with self._lock:
            self._value += int(weight)
            return self._value

    async def tick(self) -> None:
        async with self._lock:
            if self._value > 0:
                self._value -= 1

    async def value(self) -> int:
        async with self._lock:
            return self._value

    async def is_healthy(self) -> bool:
        async with self._lock:
            return self._value <= self._health_threshold
