"""
Tests for core helpers: geo, time, executor, config and logging.
"""
import asyncio
import logging
import threading

import pytest

from rideshare.core.config import Settings
from rideshare.core.executor import BackgroundExecutor
from rideshare.core.geo import BoundingBox, calculate_distance_km, estimate_duration_minutes
from rideshare.core.logging import setup_logging
from rideshare.core.utils import same_local_day, resolve_timezone


def test_distance_and_duration():
    # Downtown Manhattan to JFK
    distance = calculate_distance_km(40.7128, -74.0060, 40.6413, -73.7781)
    assert 20 < distance < 22
    assert estimate_duration_minutes(10) == 20


def test_bounding_box_widens_longitude_with_latitude():
    equator = BoundingBox.around(0.0, 0.0, 111.0)
    assert equator.max_lat == pytest.approx(1.0)
    assert equator.max_lng == pytest.approx(1.0)

    north = BoundingBox.around(60.0, 10.0, 111.0)
    assert north.max_lng - 10.0 == pytest.approx(2.0)
    assert north.contains(60.5, 11.5)
    assert not north.contains(61.5, 10.0)

    pole = BoundingBox.around(90.0, 0.0, 10.0)
    assert pole.contains(89.95, 179.0)


def test_bounding_box_wraps_at_antimeridian():
    east = BoundingBox.around(0.0, 179.9, 50.0)
    assert east.contains(0.0, -179.9)
    assert east.contains(0.0, 179.95)
    assert not east.contains(0.0, -179.0)
    assert not east.contains(0.0, 0.0)

    west = BoundingBox.around(10.0, -179.95, 20.0)
    assert west.contains(10.0, 179.95)
    assert not west.contains(10.0, 170.0)


def test_same_local_day_respects_timezone():
    tz = resolve_timezone("America/New_York")
    # 2024-03-01 23:30 and 2024-03-02 04:30 UTC are both March 1st in New York
    first = 1709335800000
    second = 1709353800000
    assert same_local_day(first, second, tz)
    assert not same_local_day(first, second, resolve_timezone("UTC"))


def test_executor_submit_and_run():
    with BackgroundExecutor(max_workers=2) as executor:
        future = executor.submit(lambda a, b: a + b, 2, 3)
        assert future.result(timeout=1) == 5

        caller = threading.get_ident()
        worker = asyncio.run(executor.run(threading.get_ident))
        assert worker != caller

        with pytest.raises(ZeroDivisionError):
            asyncio.run(executor.run(lambda: 1 / 0))

    with pytest.raises(RuntimeError):
        executor.submit(print)


def test_settings_parse_lists_and_reject_bad_values():
    settings = Settings(CORS_ORIGINS="http://a.test, http://b.test", WORKER_POOL_SIZE=2)
    assert settings.CORS_ORIGINS == ["http://a.test", "http://b.test"]
    with pytest.raises(ValueError):
        Settings(WORKER_POOL_SIZE=0)


def test_setup_logging_is_idempotent(tmp_path):
    log_file = tmp_path / "logs" / "rideshare.log"
    logger = setup_logging("debug", str(log_file))
    handlers = list(logger.handlers)
    assert setup_logging("info", str(log_file)).handlers == handlers
    assert logger.level == logging.INFO
