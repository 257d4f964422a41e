"""
Main entry point for the HR Onboarding Bot.
"""
import asyncio
import signal
import sys

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from hrbot.config import settings
from hrbot.database import init_db, close_db
from hrbot.logger import configure_logging, get_logger
from hrbot.handlers import admin, auth, directory, onboarding
from hrbot.middlewares.auth import LoggingMiddleware, SessionMiddleware
from hrbot.onboarding.wizard import WizardPool
from hrbot.services.api_client import ApiClient
from hrbot.services.hr_api import HrApi
from hrbot.scheduler.notifications import (
    setup_scheduler,
    start_scheduler,
    shutdown_scheduler,
)

# Configure logging
configure_logging()
logger = get_logger(__name__)


# Global bot, dispatcher and API client
bot: Bot = None
dp: Dispatcher = None
api_client: ApiClient = None


async def on_startup() -> None:
    """Actions to perform on startup."""
    logger.info("Starting HR Onboarding Bot...")

    # Initialize database
    await init_db()
    logger.info("Database initialized")

    # Setup scheduler
    setup_scheduler(bot, HrApi(api_client))
    start_scheduler()

    logger.info("HR Onboarding Bot started successfully")


async def on_shutdown() -> None:
    """Actions to perform on shutdown."""
    logger.info("Shutting down HR Onboarding Bot...")

    # Stop scheduler
    shutdown_scheduler()

    # Close HTTP client and database
    await api_client.aclose()
    await close_db()

    # Close bot session
    await bot.session.close()

    logger.info("HR Onboarding Bot shutdown complete")


def setup_handlers() -> None:
    """Setup middlewares and handlers."""
    global dp
    dp = Dispatcher()

    dp.update.outer_middleware(LoggingMiddleware())
    dp.update.outer_middleware(SessionMiddleware(HrApi(api_client), WizardPool()))

    # Register routers
    dp.include_router(auth.router)
    dp.include_router(onboarding.router)
    dp.include_router(directory.router)
    dp.include_router(admin.router)

    logger.info("Handlers registered")


async def main() -> None:
    """Main function."""
    global bot, api_client

    # Validate configuration
    if not settings.BOT_TOKEN:
        logger.error("BOT_TOKEN is not set!")
        sys.exit(1)

    if not settings.API_BASE_URL:
        logger.error("API_BASE_URL is not set!")
        sys.exit(1)

    # Create bot instance
    bot = Bot(
        token=settings.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    api_client = ApiClient(settings.API_BASE_URL)

    # Setup handlers
    setup_handlers()

    # Run startup
    await on_startup()

    # Setup signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()
    polling = asyncio.current_task()

    def signal_handler():
        logger.info("Received shutdown signal")
        polling.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, signal_handler)
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            pass

    try:
        # Start polling
        logger.info("Starting polling...")
        await dp.start_polling(
            bot,
            allowed_updates=dp.resolve_used_update_types(),
            handle_signals=False,
        )
    except asyncio.CancelledError:
        logger.info("Polling cancelled")
    finally:
        await on_shutdown()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped by user")
    except Exception as e:
        logger.error("Fatal error", error=str(e), exc_info=True)
        sys.exit(1)
