"""
Tests for the fixed-window write quota, driven by a fake clock.
"""
import pytest

from zera_oracle.errors import RateLimited
from zera_oracle.systems.auth_system import PEGGER_PRINCIPAL, Principal
from zera_oracle.systems.rate_limiter import RateLimiter


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, secs):
        self.now += secs


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_per_window=3, window_secs=60, clock=clock)


def test_nth_plus_one_write_is_rejected(limiter):
    alice = Principal("alice")
    for _ in range(3):
        limiter.authorize_write(alice)
    with pytest.raises(RateLimited) as exc:
        limiter.authorize_write(alice)
    assert exc.value.retry_after == 60


def test_next_window_resets_quota(limiter, clock):
    alice = Principal("alice")
    for _ in range(3):
        limiter.authorize_write(alice)
    clock.advance(59.5)
    with pytest.raises(RateLimited) as exc:
        limiter.authorize_write(alice)
    assert exc.value.retry_after == 1

    clock.advance(0.5)
    limiter.authorize_write(alice)
    assert limiter.remaining(alice) == 2


def test_principals_have_separate_windows(limiter):
    for _ in range(3):
        limiter.authorize_write(Principal("alice"))
    limiter.authorize_write(Principal("bob"))
    assert limiter.remaining(Principal("bob")) == 2


def test_system_principal_is_never_limited(limiter):
    for _ in range(50):
        limiter.authorize_write(PEGGER_PRINCIPAL)
    assert limiter.remaining(PEGGER_PRINCIPAL) is None


def test_rejected_attempts_do_not_extend_the_window(limiter, clock):
    alice = Principal("alice")
    for _ in range(3):
        limiter.authorize_write(alice)
    for _ in range(10):
        clock.advance(5)
        with pytest.raises(RateLimited):
            limiter.authorize_write(alice)
    clock.advance(10)
    limiter.authorize_write(alice)


def test_purge_drops_only_stale_windows(limiter, clock):
    limiter.authorize_write(Principal("alice"))
    clock.advance(30)
    limiter.authorize_write(Principal("bob"))
    clock.advance(30)
    assert limiter.purge_expired() == 1
    assert limiter.remaining(Principal("bob")) == 2


def test_init_app_reads_config(app):
    limiter = RateLimiter()
    limiter.init_app(app)
    assert limiter.max_per_window == app.config["WRITE_RATE_LIMIT_PER_MINUTE"]
    assert limiter.window_secs == 60
