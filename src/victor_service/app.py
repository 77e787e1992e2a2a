"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from victor_service.config import get_settings
from victor_service.core.exceptions import register_exception_handlers
from victor_service.core.lifespan import lifespan
from victor_service.core.middleware import RequestValidationMiddleware
from victor_service.routers import (
    auth,
    chats,
    health,
    notifications,
    offers,
    reviews,
    tasks,
    users,
)


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application.

    Returns:
        Configured FastAPI instance with all routers registered.
    """
    settings = get_settings()

    app = FastAPI(
        title=f"{settings.service.name} Service",
        version=settings.service.version,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router, tags=["Operations"])
    app.include_router(auth.router, tags=["Auth"])
    app.include_router(users.router, tags=["Users"])
    app.include_router(tasks.router, tags=["Tasks"])
    app.include_router(offers.router, tags=["Offers"])
    app.include_router(reviews.router, tags=["Reviews"])
    app.include_router(chats.router, tags=["Chats"])
    app.include_router(notifications.router, tags=["Notifications"])

    app.add_middleware(
        RequestValidationMiddleware,
        max_body_size=settings.request.max_body_size,
    )
    # Added last so it wraps everything, including 413/415 rejections.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    return app
