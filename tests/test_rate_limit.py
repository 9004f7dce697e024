import pytest

from FETCH.rate_limit import RateLimitState, clamp_rate_limit_delay


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0.2, 1.0),
        (5, 5),
        (600, 180.0),
        (0, 20.0),
        (-3, 20.0),
        (float("nan"), 20.0),
        (float("inf"), 20.0),
    ],
)
def test_clamp_rate_limit_delay(seconds, expected):
    assert clamp_rate_limit_delay(seconds) == expected


def test_fresh_state_is_not_limited(clock):
    state = RateLimitState(clock=clock)
    assert state.remaining() == 0
    assert state.snapshot() == (False, 0.0)


def test_extend_then_time_passes(clock):
    state = RateLimitState(clock=clock)
    state.extend(5)
    clock.advance(1)
    limited, retry_after = state.snapshot()
    assert limited
    assert retry_after == pytest.approx(4.0)


def test_extend_never_shortens(clock):
    state = RateLimitState(clock=clock)
    state.extend(30)
    assert state.extend(5) == pytest.approx(30)
    assert state.remaining() == pytest.approx(30)


def test_expiry_resets_state(clock):
    state = RateLimitState(clock=clock)
    state.extend(2)
    clock.advance(3)
    assert state.remaining() == 0
    assert state.snapshot() == (False, 0.0)


def test_remaining_is_reclamped_to_max(clock):
    state = RateLimitState(clock=clock)
    state._limited_until = clock() + 10_000
    assert state.remaining() == pytest.approx(180.0)


def test_clear(clock):
    state = RateLimitState(clock=clock)
    state.extend(20)
    state.clear()
    assert state.remaining() == 0
