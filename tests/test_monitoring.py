"""
Tests for rate limited warnings and progress logging.
"""

import logging
from concurrent.futures import ThreadPoolExecutor

from emission_raster import ProgressCounter, WarningRateLimiter


def test_rate_limiter_suppresses_after_limit(caplog):
    """Test that only the first warnings are logged."""
    logger = logging.getLogger("emission_raster.test.limiter")
    limiter = WarningRateLimiter(limit=3, logger=logger)

    with caplog.at_level(logging.WARNING, logger="emission_raster.test.limiter"):
        logged = [limiter.warn("cell %d failed", i) for i in range(5)]

    assert logged == [True, True, True, False, False]
    assert limiter.count == 5
    assert limiter.suppressed == 2

    messages = [r.getMessage() for r in caplog.records]
    assert messages[:3] == ["cell 0 failed", "cell 1 failed", "cell 2 failed"]
    assert "suppressing" in messages[3]
    assert len(messages) == 4


def test_rate_limiters_are_independent():
    """Test that two limiters do not share their counters."""
    first = WarningRateLimiter(limit=1)
    second = WarningRateLimiter(limit=1)

    first.warn("a")
    first.warn("a")

    assert second.warn("b")
    assert first.count == 2
    assert second.count == 1

    first.reset()
    assert first.count == 0
    assert first.warn("c")


def test_rate_limiter_counts_from_threads():
    """Test counting from several threads."""
    limiter = WarningRateLimiter(limit=10)

    with ThreadPoolExecutor(max_workers=4) as executor:
        list(executor.map(lambda i: limiter.warn("w %d", i), range(200)))

    assert limiter.count == 200
    assert limiter.suppressed == 190


def test_progress_counter(caplog):
    """Test that progress is logged every interval."""
    logger = logging.getLogger("emission_raster.test.progress")
    progress = ProgressCounter(25, interval=10, logger=logger)

    with caplog.at_level(logging.INFO, logger="emission_raster.test.progress"):
        for _ in range(25):
            progress.increment()

    assert progress.count == 25
    assert [r.getMessage() for r in caplog.records] == [
        "Processed 10 of 25 cells",
        "Processed 20 of 25 cells",
    ]
