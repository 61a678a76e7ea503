# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from quota_dispatch import DispatchConfig, UsageTracker


def make_tracker(clock, **config):
    return UsageTracker(config=DispatchConfig(**config), clock=clock)


def test_unknown_credential_has_zero_usage(clock):
    tracker = make_tracker(clock)
    assert tracker.calls_in_window("never-used") == 0
    assert tracker.usage_percent("never-used") == 0.0


def test_usage_percent_against_ceiling(clock, credentials):
    tracker = make_tracker(clock, hourly_ceiling=20)
    for _ in range(5):
        tracker.record_call(credentials[0])
    assert tracker.calls_in_window(credentials[0]) == 5
    assert tracker.usage_percent(credentials[0]) == 25.0
    assert tracker.usage_percent(credentials[1]) == 0.0


def test_usage_can_exceed_one_hundred_percent(clock, credentials):
    tracker = make_tracker(clock, hourly_ceiling=2)
    for _ in range(3):
        tracker.record_call(credentials[0])
    assert tracker.usage_percent(credentials[0]) == 150.0


def test_calls_fall_out_of_window(clock, credentials):
    tracker = make_tracker(clock, usage_window_seconds=3600)
    tracker.record_call(credentials[0])
    clock.advance(1800)
    tracker.record_call(credentials[0])
    assert tracker.calls_in_window(credentials[0]) == 2

    clock.advance(1799)
    assert tracker.calls_in_window(credentials[0]) == 2

    clock.advance(1)
    assert tracker.calls_in_window(credentials[0]) == 1

    clock.advance(1800)
    assert tracker.calls_in_window(credentials[0]) == 0


def test_stats_for_all_tracked_credentials(clock, credentials):
    tracker = make_tracker(clock, hourly_ceiling=10)
    tracker.record_call(credentials[0])
    tracker.record_call(credentials[0])
    tracker.record_call(credentials[1])
    clock.advance(30)

    stats = {s.credential: s for s in tracker.stats()}
    assert len(stats) == 2
    first = stats["...000001"]
    assert first.calls_in_window == 2
    assert first.usage_percent == 20.0
    assert first.seconds_since_last_call == 30

    data = first.to_dict()
    assert data["hourly_ceiling"] == 10
    assert credentials[0] not in str(data)


def test_stats_for_untracked_credential(clock, credentials):
    tracker = make_tracker(clock)
    [stats] = tracker.stats(credentials[2])
    assert stats.calls_in_window == 0
    assert stats.seconds_since_last_call is None


def test_reset_and_clear(clock, credentials):
    tracker = make_tracker(clock)
    for credential in credentials:
        tracker.record_call(credential)

    tracker.reset(credentials[0])
    assert tracker.calls_in_window(credentials[0]) == 0
    assert tracker.calls_in_window(credentials[1]) == 1

    tracker.clear()
    assert tracker.stats() == []
