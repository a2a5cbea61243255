"""Tests for API call quotas, threshold notices and the monthly reset."""

from datetime import date

import pytest

from app.services.quota import QuotaExceededError, QuotaTracker


@pytest.fixture
def quota(users, mailer, settings):
    return QuotaTracker(users, mailer, settings)


class TestTrackCall:
    @pytest.mark.asyncio
    async def test_increments(self, quota, users):
        user = await users.create("A", "a@example.com", verified=True)
        tracked = await quota.track_call(user.id)
        assert tracked.api_call_count == 1

    @pytest.mark.asyncio
    async def test_rejects_at_limit_but_still_counts(self, quota, users):
        user = await users.create("A", "a@example.com", verified=True, api_call_limit=3, api_call_count=2)

        with pytest.raises(QuotaExceededError) as exc_info:
            await quota.track_call(user.id)

        assert exc_info.value.count == 3
        assert exc_info.value.limit == 3
        assert str(exc_info.value) == "API Calls exceeded!"
        assert (await users.find_by_id(user.id)).api_call_count == 3

        with pytest.raises(QuotaExceededError):
            await quota.track_call(user.id)
        assert (await users.find_by_id(user.id)).api_call_count == 4

    @pytest.mark.asyncio
    async def test_admin_never_rejected(self, quota, users):
        admin = await users.create("Root", "root@example.com", admin=True, api_call_limit=1, api_call_count=5)
        tracked = await quota.track_call(admin.id)
        assert tracked.api_call_count == 6

    @pytest.mark.asyncio
    async def test_unknown_user(self, quota):
        assert await quota.track_call(12345) is None

    @pytest.mark.asyncio
    async def test_threshold_count(self, quota):
        assert quota.threshold_count(500) == 350
        assert quota.threshold_count(10) == 7


class TestReachingLimitEmails:
    @pytest.mark.asyncio
    async def test_only_users_exactly_at_threshold(self, quota, users, mailer):
        await users.create("At", "at@example.com", verified=True, api_call_limit=100, api_call_count=70)
        await users.create("Below", "below@example.com", verified=True, api_call_limit=100, api_call_count=69)
        await users.create("Past", "past@example.com", verified=True, api_call_limit=100, api_call_count=71)
        await users.create("Admin", "admin@example.com", verified=True, admin=True, api_call_limit=100, api_call_count=70)
        await users.create("Unverified", "new@example.com", api_call_limit=100, api_call_count=70)

        assert await quota.send_reaching_api_limit_emails() == 1
        assert mailer.sent == [("reaching_api_limit", "at@example.com", 70)]

    @pytest.mark.asyncio
    async def test_one_notice_per_crossing(self, quota, users, mailer):
        user = await users.create("At", "at@example.com", verified=True, api_call_limit=100, api_call_count=70)

        await quota.send_reaching_api_limit_emails()
        await quota.track_call(user.id)
        await quota.send_reaching_api_limit_emails()

        assert len(mailer.sent) == 1

    @pytest.mark.asyncio
    async def test_uses_each_users_limit(self, quota, users, mailer):
        await users.create("Big", "big@example.com", verified=True, api_call_limit=1000, api_call_count=700)
        await users.create("Default", "default@example.com", verified=True, api_call_count=350)

        assert await quota.send_reaching_api_limit_emails() == 2


class TestMonthlyReset:
    @pytest.mark.asyncio
    async def test_noop_when_not_first_of_month(self, quota, users, mailer):
        user = await users.create("A", "a@example.com", verified=True, api_call_count=42)

        assert await quota.reset_api_call_counts(today=date(2026, 10, 15)) == 0

        assert (await users.find_by_id(user.id)).api_call_count == 42
        assert mailer.sent == []

    @pytest.mark.asyncio
    async def test_resets_on_first_of_month(self, quota, users, mailer):
        a = await users.create("A", "a@example.com", verified=True, api_call_count=42)
        b = await users.create("B", "b@example.com", verified=True, api_call_count=500)
        pending = await users.create("C", "c@example.com", api_call_count=9)

        assert await quota.reset_api_call_counts(today=date(2026, 11, 1)) == 2

        assert (await users.find_by_id(a.id)).api_call_count == 0
        assert (await users.find_by_id(b.id)).api_call_count == 0
        assert (await users.find_by_id(pending.id)).api_call_count == 9
        assert sorted(m[1] for m in mailer.sent) == ["a@example.com", "b@example.com"]
        assert all(m[0] == "api_limit_reset" for m in mailer.sent)
