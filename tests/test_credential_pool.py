# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Tests for CredentialPool selection and lifecycle state."""

from datetime import datetime, timezone

import pytest

from quota_dispatch import (
    CredentialPool,
    CredentialState,
    DispatchConfig,
    ExhaustedError,
    NoCredentialsError,
    Outcome,
    QuotaResetMode,
)


def make_pool(credentials, clock, priority=None, **config):
    return CredentialPool(
        credentials,
        priority=priority,
        config=DispatchConfig(**config),
        clock=clock,
    )


class TestConstruction:
    def test_trims_and_deduplicates(self, clock):
        pool = make_pool([" a-key ", "b-key", "a-key", "", "  "], clock)
        assert pool.credentials == ["a-key", "b-key"]

    def test_priority_added_when_missing(self, clock):
        pool = make_pool(["b-key"], clock, priority=" p-key ")
        assert pool.credentials == ["p-key", "b-key"]
        assert pool.priority == "p-key"

    def test_empty_pool_raises_no_credentials(self, clock):
        pool = make_pool([], clock)
        with pytest.raises(NoCredentialsError):
            pool.pick()

    def test_stable_id_does_not_contain_secret(self, clock, credentials):
        pool = make_pool(credentials, clock)
        for status in pool.statuses():
            assert len(status.stable_id) == 12
            assert status.stable_id not in credentials[0]
            assert status.credential.startswith("...")


class TestSelection:
    def test_priority_always_first_while_available(self, clock, credentials):
        pool = make_pool(credentials[1:], clock, priority=credentials[0])
        for _ in range(10):
            assert pool.pick() == credentials[0]
            pool.report(credentials[0], Outcome.success())

    def test_priority_preferred_regardless_of_position(self, clock, credentials):
        pool = make_pool(credentials, clock, priority=credentials[2])
        assert pool.pick() == credentials[2]

    def test_round_robin_visits_each_once(self, clock, credentials):
        pool = make_pool(credentials, clock)
        picks = []
        for _ in range(len(credentials)):
            picked = pool.pick()
            pool.report(picked, Outcome.success())
            picks.append(picked)
        assert sorted(picks) == sorted(credentials)
        assert picks == credentials

    def test_round_robin_order_is_stable_across_cycles(self, clock, credentials):
        pool = make_pool(credentials, clock)
        first = [pool.pick() for _ in credentials]
        second = [pool.pick() for _ in credentials]
        assert first == second

    def test_round_robin_skips_failed(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report(credentials[1], Outcome.auth_failure())
        picks = [pool.pick() for _ in range(4)]
        assert credentials[1] not in picks

    def test_falls_back_to_round_robin_when_priority_limited(self, clock, credentials):
        pool = make_pool(credentials, clock, priority=credentials[0])
        pool.report(credentials[0], Outcome.quota_exceeded(retry_after=60))
        assert pool.pick() == credentials[1]
        assert pool.pick() == credentials[2]
        assert pool.pick() == credentials[1]

    def test_exclude_skips_available_credentials(self, clock, credentials):
        pool = make_pool(credentials, clock, priority=credentials[0])
        assert pool.pick(exclude=[credentials[0]]) == credentials[1]

    def test_all_excluded_raises_exhausted_without_eta(self, clock, credentials):
        pool = make_pool(credentials, clock)
        with pytest.raises(ExhaustedError) as exc_info:
            pool.pick(exclude=credentials)
        assert exc_info.value.eta is None
        assert exc_info.value.retry_after is None


class TestQuota:
    def test_excluded_until_retry_after_elapses(self, clock, credentials):
        pool = make_pool(credentials[:1], clock)
        t0 = clock()
        pool.report(credentials[0], Outcome.quota_exceeded(retry_after=30))

        for offset in (0, 1, 15, 29.999):
            clock.now = t0 + offset
            with pytest.raises(ExhaustedError):
                pool.pick()

        clock.now = t0 + 30
        assert pool.pick() == credentials[0]
        assert pool.quota_limited_count() == 0

    def test_quota_clears_failed_marking(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report(credentials[0], Outcome.auth_failure())
        pool.report(credentials[0], Outcome.quota_exceeded(retry_after=10))
        status = pool.statuses()[0]
        assert status.state == CredentialState.QUOTA_LIMITED
        assert pool.failed_count() == 0

    def test_default_reset_is_next_daily_reset(self, clock, credentials):
        clock.now = datetime(2026, 3, 10, 15, 30, tzinfo=timezone.utc).timestamp()
        pool = make_pool(credentials, clock)
        pool.report(credentials[0], Outcome.quota_exceeded())
        expected = datetime(2026, 3, 11, 0, 0, tzinfo=timezone.utc).timestamp()
        assert pool.statuses()[0].quota_expires_at == expected

    def test_default_reset_honours_configured_time(self, clock, credentials):
        clock.now = datetime(2026, 3, 10, 6, 0, tzinfo=timezone.utc).timestamp()
        pool = make_pool(credentials, clock, daily_reset_time_utc="08:00")
        pool.report(credentials[0], Outcome.quota_exceeded())
        expected = datetime(2026, 3, 10, 8, 0, tzinfo=timezone.utc).timestamp()
        assert pool.statuses()[0].quota_expires_at == expected

    def test_fixed_ttl_reset(self, clock, credentials):
        pool = make_pool(
            credentials,
            clock,
            quota_reset_mode=QuotaResetMode.FIXED_TTL,
            quota_reset_ttl=600,
        )
        pool.report(credentials[0], Outcome.quota_exceeded())
        assert pool.statuses()[0].quota_expires_at == clock() + 600

    def test_exhausted_reports_minimum_eta(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report(credentials[0], Outcome.quota_exceeded(retry_after=300))
        pool.report(credentials[1], Outcome.quota_exceeded(retry_after=45))
        pool.report(credentials[2], Outcome.quota_exceeded(retry_after=120))

        with pytest.raises(ExhaustedError) as exc_info:
            pool.pick()
        assert exc_info.value.eta == clock() + 45
        assert exc_info.value.retry_after == 45
        assert pool.earliest_quota_expiry() == clock() + 45

    def test_statuses_report_remaining_time(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report(credentials[1], Outcome.quota_exceeded(retry_after=100))
        clock.advance(40)
        status = pool.statuses()[1]
        assert status.state == CredentialState.QUOTA_LIMITED
        assert status.quota_remaining_seconds == 60


class TestResets:
    def test_mass_reset_when_all_failed(self, clock, credentials):
        pool = make_pool(credentials, clock)
        for credential in credentials:
            pool.report(credential, Outcome.auth_failure())
        assert pool.available_count() == 0

        assert pool.pick() in credentials
        assert pool.failed_count() == 0

    def test_no_mass_reset_while_any_quota_limited(self, clock, credentials):
        pool = make_pool(credentials[:2], clock)
        pool.report(credentials[0], Outcome.auth_failure())
        pool.report(credentials[1], Outcome.quota_exceeded(retry_after=50))

        with pytest.raises(ExhaustedError) as exc_info:
            pool.pick()
        assert exc_info.value.retry_after == 50
        assert pool.failed_count() == 1

    def test_transient_and_success_leave_state_unchanged(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report(credentials[0], Outcome.transient_failure())
        pool.report(credentials[1], Outcome.success())
        assert pool.available_count() == 3

    def test_admin_resets(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report(credentials[0], Outcome.auth_failure())
        pool.report(credentials[1], Outcome.quota_exceeded(retry_after=60))

        assert pool.clear_quota_limits() == 1
        assert pool.quota_limited_count() == 0
        assert pool.reset_failed() == 1
        assert pool.available_count() == 3

        pool.report(credentials[2], Outcome.auth_failure())
        assert pool.reset_all() == 1
        assert pool.pick() == credentials[0]

    def test_has_usable(self, clock, credentials):
        pool = make_pool(credentials[:2], clock)
        assert pool.has_usable()
        pool.report(credentials[0], Outcome.quota_exceeded(retry_after=60))
        assert pool.has_usable()
        assert not pool.has_usable(exclude=[credentials[1]])

    def test_unknown_credential_report_is_ignored(self, clock, credentials):
        pool = make_pool(credentials, clock)
        pool.report("not-in-pool", Outcome.auth_failure())
        assert pool.available_count() == 3

    def test_credential_for_id(self, clock, credentials):
        pool = make_pool(credentials, clock)
        status = pool.statuses()[2]
        assert pool.credential_for_id(status.stable_id) == credentials[2]
        assert pool.credential_for_id("missing") is None
