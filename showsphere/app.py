import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from showsphere.api.v1 import routes_admin, routes_booking, routes_health, routes_show, routes_webhook
from showsphere.core.config import settings
from showsphere.core.container import build_services
from showsphere.core.exceptions import BookingError
from showsphere.db import session
from showsphere.redis import close_redis, redis_client
from showsphere.workers.background import start_background_workers, stop_background_workers


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )
    if settings.ENV == 'development':
        await session.init_db()

    if getattr(app.state, "services", None) is None:
        app.state.services = build_services(settings, session.async_session, redis_client)
    if settings.STRIPE_SECRET_KEY is None:
        logger.warning("STRIPE_SECRET_KEY is not set, bookings are confirmed without payment")

    tasks = start_background_workers(app.state.services) if settings.RUN_BACKGROUND_WORKERS else []
    yield
    await stop_background_workers(tasks)
    await app.state.services.dispatcher.drain()
    await close_redis()
    await session.engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.PROJECT_VERSION,
        description=settings.PROJECT_DESCRIPTION,
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BookingError)
    async def booking_error_handler(request: Request, exc: BookingError):
        if exc.stack_trace:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}\n{exc.stack_trace}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "message": exc.message}
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0]["msg"] if errors else "Invalid request"
        return JSONResponse(
            status_code=400,
            content={"success": False, "message": message}
        )

    app.include_router(
        routes_health.router,
        prefix=settings.API_V1_PREFIX
    )
    app.include_router(
        routes_booking.router,
        prefix=settings.API_V1_PREFIX
    )
    app.include_router(
        routes_show.router,
        prefix=settings.API_V1_PREFIX
    )
    app.include_router(
        routes_admin.router,
        prefix=settings.API_V1_PREFIX
    )
    app.include_router(
        routes_webhook.router,
        prefix=settings.API_V1_PREFIX,
        tags=["webhooks"]
    )

    @app.get("/")
    async def root():
        return {"message": "Server is Live!"}
    return app


app = create_app()
