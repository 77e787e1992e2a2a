"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from victor_service.config import get_safe_config, get_settings
from victor_service.core.state import init_app_state
from victor_service.logging import get_logger, setup_logging
from victor_service.services.chat_manager import ChatManager
from victor_service.services.chat_store import ChatStore
from victor_service.services.notification_service import NotificationService
from victor_service.services.notification_store import NotificationStore
from victor_service.services.offer_manager import OfferManager
from victor_service.services.passwords import PasswordHasher
from victor_service.services.review_manager import ReviewManager
from victor_service.services.task_manager import TaskManager
from victor_service.services.task_store import TaskStore
from victor_service.services.token_service import TokenService
from victor_service.services.user_manager import UserManager
from victor_service.services.user_store import UserStore

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)
    logger.debug("Loaded configuration", extra={"config": get_safe_config()})

    state = init_app_state()

    db_path = settings.database.path
    limits = settings.limits

    # Stores share one SQLite file, each over its own connection
    user_store = UserStore(db_path=db_path)
    task_store = TaskStore(db_path=db_path)
    chat_store = ChatStore(db_path=db_path)
    notification_store = NotificationStore(db_path=db_path)

    notification_service = NotificationService(store=notification_store)
    state.notification_service = notification_service

    review_manager = ReviewManager(store=task_store, max_comment_length=limits.max_comment_length)
    state.review_manager = review_manager

    user_manager = UserManager(
        store=user_store,
        hasher=PasswordHasher(
            n=settings.auth.scrypt_n,
            r=settings.auth.scrypt_r,
            p=settings.auth.scrypt_p,
        ),
        tokens=TokenService(
            secret=settings.auth.jwt_secret,
            algorithm=settings.auth.jwt_algorithm,
            expiry_seconds=settings.auth.token_expiry_seconds,
        ),
        reviews=review_manager,
        min_password_length=settings.auth.min_password_length,
    )
    state.user_manager = user_manager

    task_manager = TaskManager(
        store=task_store,
        notifications=notification_service,
        max_title_length=limits.max_title_length,
        max_description_length=limits.max_description_length,
    )
    state.task_manager = task_manager

    state.offer_manager = OfferManager(
        store=task_store,
        notifications=notification_service,
        max_message_length=limits.max_offer_message_length,
    )

    chat_manager = ChatManager(
        store=chat_store,
        users=user_store,
        tasks=task_store,
        notifications=notification_service,
        max_message_length=limits.max_message_length,
    )
    state.chat_manager = chat_manager

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": db_path,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})

    chat_manager.close()
    notification_service.close()
    task_manager.close()
    user_manager.close()
