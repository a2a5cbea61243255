"""Process-wide service wiring, built once at startup."""

from dataclasses import dataclass

from app.config import Settings
from app.database import Database
from app.integrations.scraper import Scraper
from app.orchestrator.router import ResourceRouter
from app.services.api_call_log import ApiCallLogRepository
from app.services.auth_keys import AuthKeyService
from app.services.cache import CacheStore
from app.services.health_check import HealthCheckService
from app.services.mail import Mailer
from app.services.quota import QuotaTracker
from app.services.refresher import CacheRefresher
from app.services.scheduler import CronService
from app.services.user_repository import UserRepository


@dataclass
class AppContext:
    settings: Settings
    database: Database
    cache: CacheStore
    scraper: Scraper
    users: UserRepository
    api_call_logs: ApiCallLogRepository
    mailer: Mailer
    auth_keys: AuthKeyService
    quota: QuotaTracker
    router: ResourceRouter
    refresher: CacheRefresher
    cron: CronService
    health_check: HealthCheckService


def create_context(settings: Settings) -> AppContext:
    database = Database(settings.database_url)
    cache = CacheStore(database.session_factory)
    scraper = Scraper(cache, settings)
    users = UserRepository(database.session_factory)
    mailer = Mailer(settings)
    quota = QuotaTracker(users, mailer, settings)
    router = ResourceRouter(scraper)
    refresher = CacheRefresher(cache, router, settings)

    return AppContext(
        settings=settings,
        database=database,
        cache=cache,
        scraper=scraper,
        users=users,
        api_call_logs=ApiCallLogRepository(database.session_factory),
        mailer=mailer,
        auth_keys=AuthKeyService(users, settings, mailer),
        quota=quota,
        router=router,
        refresher=refresher,
        cron=CronService(cache, refresher, quota, settings),
        health_check=HealthCheckService(cache, settings),
    )
