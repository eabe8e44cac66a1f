import pytest

from pinsync.infrastructure.resilience.rate_limiter import (
    ALL_BUCKET,
    DEFAULT_BUCKET,
    RECENT_BUCKET,
    RateLimiter,
)


@pytest.fixture
def limiter(fake_clock):
    return RateLimiter(clock=fake_clock)


@pytest.mark.parametrize("endpoint, bucket", [
    ("posts/all", ALL_BUCKET),
    ("/posts/all", ALL_BUCKET),
    ("posts/recent", RECENT_BUCKET),
    ("posts/add", DEFAULT_BUCKET),
    ("posts/update", DEFAULT_BUCKET),
    ("tags/get", DEFAULT_BUCKET),
    ("all", ALL_BUCKET),
    ("recent", RECENT_BUCKET),
])
def test_classify(endpoint, bucket):
    assert RateLimiter.classify(endpoint) == bucket


def test_never_used_bucket_has_no_wait(limiter):
    assert limiter.wait_time("posts/all") == 0.0
    assert limiter.wait_time("posts/add") == 0.0


def test_wait_counts_down_from_baseline(limiter, fake_clock):
    limiter.record_request("posts/recent")
    assert limiter.wait_time("posts/recent") == 60.0
    fake_clock.advance(45)
    assert limiter.wait_time("posts/recent") == 15.0
    fake_clock.advance(100)
    assert limiter.wait_time("posts/recent") == 0.0


def test_endpoints_in_same_bucket_share_timer(limiter):
    limiter.record_request("posts/add")
    assert limiter.wait_time("posts/delete") == 3.0
    assert limiter.wait_time("posts/all") == 0.0


def test_record_request_only_moves_forward(limiter, fake_clock):
    limiter.record_request("posts/all")
    stamped = limiter.state("posts/all").last_request_time
    fake_clock.now -= 10
    limiter.record_request("posts/all")
    assert limiter.state("posts/all").last_request_time == stamped


def test_backoff_doubles_from_baseline(limiter):
    assert limiter.note_rate_limited("posts/all") == 600.0
    assert limiter.note_rate_limited("posts/all") == 1200.0
    assert limiter.note_rate_limited("posts/all") == 2400.0
    assert limiter.wait_time("posts/all") == 2400.0


@pytest.mark.parametrize("times", [1, 2, 5])
def test_backoff_after_n_rate_limits(limiter, times):
    for _ in range(times):
        limiter.note_rate_limited("posts/add")
    assert limiter.wait_time("posts/add") == 3.0 * 2 ** times


def test_backoff_is_not_reduced_by_elapsed_time(limiter, fake_clock):
    limiter.record_request("posts/recent")
    limiter.note_rate_limited("posts/recent")
    fake_clock.advance(500)
    assert limiter.wait_time("posts/recent") == 120.0


def test_clear_backoff_restores_baseline_behaviour(limiter, fake_clock):
    limiter.record_request("posts/all")
    limiter.note_rate_limited("posts/all")
    limiter.note_rate_limited("posts/all")
    limiter.clear_backoff("posts/all")
    assert limiter.state("posts/all").explicit_backoff is None
    assert limiter.wait_time("posts/all") == 300.0
    # The next 429 starts again from the baseline
    assert limiter.note_rate_limited("posts/all") == 600.0


def test_backoff_is_per_bucket(limiter):
    limiter.note_rate_limited("posts/all")
    assert limiter.wait_time("posts/recent") == 0.0


def test_custom_intervals_override_defaults(fake_clock):
    limiter = RateLimiter(intervals={"default": 0.5}, clock=fake_clock)
    assert limiter.baseline_interval("posts/add") == 0.5
    assert limiter.baseline_interval("posts/all") == 300.0


def test_reset_forgets_state(limiter):
    limiter.record_request("posts/all")
    limiter.note_rate_limited("posts/recent")
    limiter.reset()
    assert limiter.wait_time("posts/all") == 0.0
    assert limiter.wait_time("posts/recent") == 0.0
