"""API usage quotas: per-call counting, threshold notices and the monthly reset."""

import logging
from datetime import date, datetime, timezone

from app.config import Settings
from app.models.user import User
from app.services.mail import Mailer
from app.services.user_repository import UserRepository

logger = logging.getLogger(__name__)


class QuotaExceededError(Exception):
    """The caller has used up its monthly API calls (a throttle, not an auth failure)."""

    def __init__(self, user_id: int, count: int, limit: int):
        self.user_id = user_id
        self.count = count
        self.limit = limit
        super().__init__("API Calls exceeded!")


class QuotaTracker:
    def __init__(self, users: UserRepository, mailer: Mailer, settings: Settings):
        self.users = users
        self.mailer = mailer
        self.threshold_percent = settings.api_call_threshold_percent

    async def track_call(self, user_id: int) -> User | None:
        """Count one call, then reject if the new count reached the limit.

        The increment happens first, so a rejected call still counts. Admins
        are never rejected.
        """
        user = await self.users.increment_api_call_count(user_id)
        if user is None:
            return None

        if user.api_call_count >= user.api_call_limit and not user.admin:
            logger.info("API quota exceeded | user_id=%d | count=%d | limit=%d",
                        user.id, user.api_call_count, user.api_call_limit)
            raise QuotaExceededError(user.id, user.api_call_count, user.api_call_limit)

        return user

    def threshold_count(self, limit: int) -> int:
        return limit * self.threshold_percent // 100

    async def send_reaching_api_limit_emails(self) -> int:
        """Notify users sitting exactly at the threshold.

        Equality means one notice per crossing: the next call moves the count
        past the threshold.
        """
        logger.info("cron job started: send_reaching_api_limit_emails")
        users = await self.users.find_at_api_call_threshold(self.threshold_percent)

        for user in users:
            await self.mailer.send_reaching_api_limit_email(user.email, user.name, self.threshold_percent)
            logger.info("Reaching-limit email sent | user_id=%d", user.id)

        logger.info("cron job completed: send_reaching_api_limit_emails | notified=%d", len(users))
        return len(users)

    async def reset_api_call_counts(self, today: date | None = None) -> int:
        """Zero every verified user's count on the first of the month; no-op otherwise."""
        today = today or datetime.now(timezone.utc).date()
        if today.day != 1:
            logger.info("cron job skipped: reset_api_call_counts (not start of month)")
            return 0

        logger.info("cron job started: reset_api_call_counts")
        users = await self.users.find_verified()
        await self.users.reset_all_api_call_counts()

        for user in users:
            await self.mailer.send_api_limit_reset_email(user.email, user.name)
            logger.info("reset_api_call_counts email sent | user_id=%d", user.id)

        logger.info("cron job completed: reset_api_call_counts | users=%d", len(users))
        return len(users)
