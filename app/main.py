import sys

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from tortoise.contrib.fastapi import register_tortoise

from app import settings
from app.routers import activities, bookings, events, notifications, proposals, services

logger.remove()
logger.add(sys.stderr, level=settings.log_level)


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Malformed bodies and query params are 400, like every other ValidationError."""
    logger.debug("Rejected {} {}: {}", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


def build_api() -> FastAPI:
    """Routes and handlers only. The database is attached by create_app()."""
    app = FastAPI(
        title="Event Workflow Service",
        description="Event -> Proposal -> Booking workflow for the services marketplace",
    )

    app.include_router(events.router)
    app.include_router(proposals.router)
    app.include_router(bookings.customer_router)
    app.include_router(bookings.provider_router)
    app.include_router(bookings.admin_router)
    app.include_router(services.provider_router)
    app.include_router(services.marketplace_router)
    app.include_router(notifications.router)
    app.include_router(activities.router)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health", tags=["health"])
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def create_app() -> FastAPI:
    app = build_api()
    register_tortoise(
        app,
        db_url=settings.db_url,
        modules={"models": ["app.models"]},
        generate_schemas=settings.generate_schemas,
    )
    return app


app = create_app()
