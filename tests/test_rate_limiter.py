from __future__ import annotations

import allure
from conftest import FakeClock

from studio_queue.config import RateLimitSettings
from studio_queue.queue.models import RateStatus
from studio_queue.queue.rate_limiter import RateLimiter

pytestmark = [
    allure.epic("Generation Queue"),
    allure.feature("Rate Limiting"),
]


def test_rpm_counts_requests_inside_window(fake_clock: FakeClock) -> None:
    limiter = RateLimiter(clock=fake_clock)
    for _ in range(5):
        limiter.record_request()
        fake_clock.advance(1)

    assert limiter.rpm() == 5


def test_requests_expire_after_window(fake_clock: FakeClock) -> None:
    limiter = RateLimiter(clock=fake_clock)
    for _ in range(5):
        limiter.record_request()

    fake_clock.advance(61)

    assert limiter.rpm() == 0
    assert limiter.status() == RateStatus.HEALTHY


def test_window_slides_per_request(fake_clock: FakeClock) -> None:
    limiter = RateLimiter(clock=fake_clock)
    limiter.record_request()
    fake_clock.advance(30)
    limiter.record_request()
    fake_clock.advance(31)

    assert limiter.rpm() == 1


def test_status_thresholds(fake_clock: FakeClock) -> None:
    limiter = RateLimiter(clock=fake_clock)
    for _ in range(14):
        limiter.record_request()
    assert limiter.status() == RateStatus.HEALTHY

    limiter.record_request()
    assert limiter.status() == RateStatus.WARNING

    for _ in range(5):
        limiter.record_request()
    assert limiter.rpm() == 20
    assert limiter.status() == RateStatus.CRITICAL


def test_custom_thresholds_and_describe(fake_clock: FakeClock) -> None:
    limiter = RateLimiter(
        RateLimitSettings(window_seconds=10, warning_rpm=1, critical_rpm=2),
        clock=fake_clock,
    )
    limiter.record_request()

    assert limiter.status() == RateStatus.WARNING
    assert limiter.describe() == "1 / 2 RPM (warning)"


def test_reset_clears_history(fake_clock: FakeClock) -> None:
    limiter = RateLimiter(clock=fake_clock)
    limiter.record_request()
    limiter.reset()

    assert limiter.rpm() == 0
