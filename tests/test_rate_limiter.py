from __future__ import annotations

import pytest

from konnichiwa.core.rate_limit import RateLimiter


def test_single_flight_and_cooldown():
    limiter = RateLimiter(cooldown_s=5.0)

    assert limiter.try_acquire(0.0)
    assert limiter.is_translating
    assert not limiter.try_acquire(10.0)

    limiter.release()
    assert not limiter.is_translating
    assert limiter.last_request_at == 0.0

    assert not limiter.try_acquire(4.0)
    assert limiter.cooldown_remaining(4.0) == pytest.approx(1.0)
    assert limiter.try_acquire(5.0)
    assert limiter.last_request_at == 5.0


def test_denied_attempts_do_not_move_the_window():
    limiter = RateLimiter(cooldown_s=5.0)
    assert limiter.try_acquire(0.0)
    limiter.release()

    for t in (1.0, 2.0, 3.0, 4.0):
        assert not limiter.try_acquire(t)
    assert limiter.last_request_at == 0.0
    assert limiter.try_acquire(5.0)


def test_zero_cooldown_only_enforces_single_flight():
    limiter = RateLimiter(cooldown_s=0.0)
    assert limiter.try_acquire(0.0)
    assert not limiter.try_acquire(0.0)
    limiter.release()
    assert limiter.try_acquire(0.0)


def test_first_request_has_no_cooldown():
    limiter = RateLimiter()
    assert limiter.cooldown_remaining(0.0) == 0.0
    assert limiter.try_acquire(123.0)


def test_negative_cooldown_rejected():
    with pytest.raises(ValueError):
        RateLimiter(cooldown_s=-1.0)
