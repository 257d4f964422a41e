"""
Middlewares for the HR Onboarding Bot.
"""
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, User
from sqlalchemy.ext.asyncio import async_sessionmaker

from hrbot.database import async_session_maker
from hrbot.onboarding.wizard import WizardPool
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionService
from hrbot.services.store import SqlKeyValueStore
from hrbot.logger import get_logger

logger = get_logger(__name__)


class SessionMiddleware(BaseMiddleware):
    """Injects the user's store, session, API handle and the wizard pool."""

    def __init__(
        self,
        api: HrApi,
        wizards: WizardPool,
        session_factory: async_sessionmaker = async_session_maker,
    ):
        self.api = api
        self.wizards = wizards
        self.session_factory = session_factory

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        """Load the stored session of the sender."""
        user: User = data.get("event_from_user")

        if user:
            store = SqlKeyValueStore(user.id, self.session_factory)
            session = await SessionService(store).load()

            async def on_session_expired() -> None:
                await store.clear()
                self.wizards.discard(user.id)
                logger.info("Session cleared after auth failure", user_id=user.id)

            data["store"] = store
            data["session"] = session
            data["api"] = HrApi(
                self.api.client,
                token=session.token if session else None,
                on_session_expired=on_session_expired,
            )
            data["wizards"] = self.wizards

        return await handler(event, data)


class LoggingMiddleware(BaseMiddleware):
    """Middleware for logging all updates."""

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any],
    ) -> Any:
        """Log incoming updates."""
        user: User = data.get("event_from_user")

        if user:
            logger.debug(
                "Update received",
                user_id=user.id,
                username=user.username,
                update_type=type(event).__name__,
            )

        return await handler(event, data)
