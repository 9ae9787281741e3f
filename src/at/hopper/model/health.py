import asyncio


class HealthGauge:
    """
    Error-rate based readiness signal.

    Every unexpected error raised while handling a request (anything that is not a
    normal resolution outcome such as an invalid AT-URI or an unresolvable one) raises
    the gauge by one. A background task lowers it by one every tick. A burst of errors
    pushes the value past the threshold and readiness probes start failing until the
    gauge has decayed again.
    """

    def __init__(self, value: int = 0, health_threshold: int = 100) -> None:
        self._value = value
        self._health_threshold = health_threshold
        self._lock = asyncio.Lock()

    async def record_error(self, count: int = 1) -> int:
        async with self._lock:
            self._value += int(count)
            return self._value

    async def tick(self) -> int:
        """Decay the gauge by one and return the remaining error score."""
        async with self._lock:
            self._value = max(self._value - 1, 0)
            return self._value

    async def current(self) -> int:
        async with self._lock:
            return self._value

    async def is_healthy(self) -> bool:
        return await self.current() <= self._health_threshold
