"""Close Powerlifting backend — FastAPI application entry point.

Serves openpowerlifting.org data (rankings, federations, meets, records,
lifter profiles, status) through a read-through cache kept warm by the
background refresher.
"""

import logging
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import Settings, settings as default_settings
from app.context import AppContext, create_context
from app.integrations.scraper import calculate_pagination
from app.models.user import User
from app.orchestrator.schemas import ApiResponse, Pagination
from app.pipelines import federations, lifters, meets, rankings, records, status
from app.services.auth_keys import InvalidApiKeyError
from app.services.quota import QuotaExceededError

logging.basicConfig(
    level=default_settings.log_level,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("close_powerlifting")

NOT_FOUND_MESSAGE = "The resource cannot be found!"


# ═══════════════ HELPERS ═══════════════

def request_url(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def respond(
    request: Request,
    data,
    cache: bool = False,
    pagination: Pagination | None = None,
    message: str = "The resource was returned successfully!",
) -> dict:
    if data is None:
        raise StarletteHTTPException(status_code=404, detail=NOT_FOUND_MESSAGE)
    return ApiResponse(
        request_url=request_url(request),
        message=message,
        cache=cache,
        data=data,
        pagination=pagination,
    ).model_dump(by_alias=True, exclude_none=True)


def fail(request: Request, status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "fail", "request_url": request_url(request), "message": message, "data": []},
    )


# ═══════════════ DEPENDENCIES ═══════════════

def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def extract_api_key(request: Request) -> str | None:
    """``Authorization: Bearer <key>`` first, then ``X-API-Key``."""
    authorization = request.headers.get("authorization", "")
    parts = authorization.split(" ")
    if len(parts) == 2 and parts[0].lower() == "bearer" and parts[1]:
        return parts[1]
    return request.headers.get("x-api-key") or None


async def authenticate(request: Request, ctx: AppContext = Depends(get_context)) -> User:
    token = extract_api_key(request)
    user = await ctx.auth_keys.validate_key(token) if token else None
    if user is None:
        raise InvalidApiKeyError()
    request.state.user_id = user.id
    return user


async def track_api_call(user: User = Depends(authenticate), ctx: AppContext = Depends(get_context)) -> User:
    await ctx.quota.track_call(user.id)
    return user


# ═══════════════ APP ═══════════════

def create_app(settings: Settings = default_settings, context: AppContext | None = None) -> FastAPI:
    """Build the app. A prebuilt ``context`` is used as-is and never torn down here."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if context is not None:
            app.state.ctx = context
            yield
            return

        ctx = create_context(settings)
        app.state.ctx = ctx
        logger.info("Close Powerlifting backend starting | env=%s", settings.app_env)

        db_ok = await ctx.database.init()
        logger.info("Database: %s", "connected" if db_ok else "unavailable")
        if settings.scheduler_enabled:
            ctx.cron.start()

        yield

        ctx.cron.stop()
        await ctx.scraper.drain()
        await ctx.database.close()
        logger.info("Close Powerlifting backend shutting down")

    app = FastAPI(
        title="Close Powerlifting API",
        description="Powerlifting rankings, meets, records and lifter profiles",
        version="1.0.0",
        lifespan=lifespan,
    )
    if context is not None:
        app.state.ctx = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-API-Key"],
    )

    @app.middleware("http")
    async def log_api_calls(request: Request, call_next):
        response = await call_next(request)
        user_id = getattr(request.state, "user_id", None)
        if user_id is not None:
            try:
                await request.app.state.ctx.api_call_logs.create(
                    user_id, request.method, request_url(request), response.status_code,
                )
            except Exception as e:
                logger.warning("API call logging failed | user_id=%d | %s", user_id, str(e)[:200])
        return response

    @app.exception_handler(InvalidApiKeyError)
    async def invalid_api_key_handler(request: Request, exc: InvalidApiKeyError):
        return fail(request, 401, str(exc))

    @app.exception_handler(QuotaExceededError)
    async def quota_exceeded_handler(request: Request, exc: QuotaExceededError):
        return fail(request, 429, str(exc))

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if exc.status_code != 404 or exc.detail != "Not Found" else "The resource does not exist!"
        return fail(request, exc.status_code, message)

    register_routes(app, settings)
    return app


def register_routes(app: FastAPI, settings: Settings) -> None:
    CurrentPage = Annotated[int, Query(ge=1)]
    PerPage = Annotated[int, Query(ge=1, le=settings.max_per_page)]
    tracked = [Depends(track_api_call)]

    @app.get("/health")
    async def health(ctx: AppContext = Depends(get_context)):
        return {
            "status": "ok",
            "cache_ready": await ctx.cache.is_ready(),
            "scheduler": ctx.cron.get_status(),
        }

    @app.get("/api/status", dependencies=tracked)
    async def get_status(request: Request, cache: bool = True, ctx: AppContext = Depends(get_context)):
        result = await status.get_status(ctx.scraper, use_cache=cache)
        return respond(request, result.data, result.cache)

    @app.get("/api/health-check", dependencies=tracked)
    async def health_check(request: Request, ctx: AppContext = Depends(get_context)):
        return respond(request, await ctx.health_check.get_api_status())

    # ── Federations ─────────────────────────────────────────────────

    @app.get("/api/federations", dependencies=tracked)
    async def list_federations(
        request: Request,
        current_page: CurrentPage = 1,
        per_page: PerPage = settings.default_per_page,
        cache: bool = True,
        ctx: AppContext = Depends(get_context),
    ):
        result, pagination = await federations.get_federations(ctx.scraper, current_page, per_page, use_cache=cache)
        return respond(request, result.data, result.cache, pagination)

    @app.get("/api/federations/{federation}", dependencies=tracked)
    async def get_federation(
        request: Request,
        federation: str,
        year: int | None = Query(None, ge=1000, le=9999),
        cache: bool = True,
        ctx: AppContext = Depends(get_context),
    ):
        result = await federations.get_federation(ctx.scraper, federation, year, use_cache=cache)
        return respond(request, result.data, result.cache)

    # ── Records ─────────────────────────────────────────────────────

    @app.get("/api/records", dependencies=tracked)
    async def get_records(request: Request, cache: bool = True, ctx: AppContext = Depends(get_context)):
        result = await records.get_records(ctx.scraper, use_cache=cache)
        return respond(request, result.data, result.cache)

    @app.get("/api/records/{equipment}", dependencies=tracked)
    @app.get("/api/records/{equipment}/{sex}", dependencies=tracked)
    async def get_filtered_records(
        request: Request,
        equipment: str,
        sex: str | None = None,
        cache: bool = True,
        ctx: AppContext = Depends(get_context),
    ):
        filter_path = records.build_records_filter_path(equipment, sex)
        result = await records.get_records(ctx.scraper, filter_path, use_cache=cache)
        return respond(request, result.data, result.cache)

    # ── Rankings ────────────────────────────────────────────────────

    @app.get("/api/rankings", dependencies=tracked)
    async def get_rankings(
        request: Request,
        current_page: CurrentPage = 1,
        per_page: PerPage = settings.default_per_page,
        cache: bool = True,
        ctx: AppContext = Depends(get_context),
    ):
        result = await rankings.get_rankings(ctx.scraper, current_page, per_page, use_cache=cache)
        return rankings_response(request, result, current_page, per_page)

    @app.get("/api/rankings/{rank:int}", dependencies=tracked)
    async def get_rank(request: Request, rank: int, cache: bool = True, ctx: AppContext = Depends(get_context)):
        row = await rankings.get_rank(ctx.scraper, rank, settings.default_per_page, use_cache=cache)
        return respond(request, row)

    @app.get("/api/rankings/{filters:path}", dependencies=tracked)
    async def get_filtered_rankings(
        request: Request,
        filters: str,
        current_page: CurrentPage = 1,
        per_page: PerPage = settings.default_per_page,
        cache: bool = True,
        ctx: AppContext = Depends(get_context),
    ):
        result = await rankings.get_rankings(
            ctx.scraper, current_page, per_page, filter_path=filters.strip("/"), use_cache=cache,
        )
        return rankings_response(request, result, current_page, per_page)

    # ── Meets and lifters ───────────────────────────────────────────

    @app.get("/api/meets/{meet:path}", dependencies=tracked)
    async def get_meet(request: Request, meet: str, cache: bool = True, ctx: AppContext = Depends(get_context)):
        result = await meets.get_meet(ctx.scraper, meet.strip("/"), use_cache=cache)
        return respond(request, result.data, result.cache)

    @app.get("/api/users", dependencies=tracked)
    async def search_users(
        request: Request,
        search: str = "",
        current_page: CurrentPage = 1,
        per_page: PerPage = settings.default_per_page,
        ctx: AppContext = Depends(get_context),
    ):
        found = await lifters.search_lifters(ctx.scraper, search, current_page, per_page)
        return respond(request, found)

    @app.get("/api/users/{username}", dependencies=tracked)
    async def get_user(request: Request, username: str, cache: bool = True, ctx: AppContext = Depends(get_context)):
        result = await lifters.get_lifter(ctx.scraper, username, use_cache=cache)
        return respond(request, result.data, result.cache)


def rankings_response(request: Request, result, current_page: int, per_page: int) -> dict:
    if result.data is None:
        return respond(request, None)
    pagination = calculate_pagination(result.data["total_length"], current_page, per_page)
    return respond(request, result.data["rows"], result.cache, pagination)


app = create_app()
