import pytest

from at.hopper.model.health import HealthGauge


@pytest.mark.asyncio
async def test_health_gauge_threshold():
    gauge = HealthGauge(health_threshold=2)
    assert await gauge.is_healthy()

    assert await gauge.record_error() == 1
    assert await gauge.record_error(2) == 3
    assert not await gauge.is_healthy()

    await gauge.tick()
    assert await gauge.is_healthy()


@pytest.mark.asyncio
async def test_health_gauge_tick_floor():
    gauge = HealthGauge()
    await gauge.tick()
    await gauge.tick()
    assert await gauge.record_error() == 1


@pytest.mark.asyncio
async def test_health_gauge_current():
    gauge = HealthGauge(value=5)
    assert await gauge.current() == 5
    assert await gauge.tick() == 4
    assert await gauge.current() == 4
