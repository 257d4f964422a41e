"""
Daily birthday and work-anniversary notifications.
"""
from datetime import date
from typing import Any, Dict, List

from aiogram import Bot
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
import pytz
from sqlalchemy.ext.asyncio import async_sessionmaker

from hrbot.config import settings
from hrbot.constants import StoreKey
from hrbot.database import async_session_maker
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionService
from hrbot.services.store import KeyValueStore, SqlKeyValueStore
from hrbot.utils.date_utils import parse_date, today
from hrbot.utils.formatting import celebration_message
from hrbot.logger import get_logger

logger = get_logger(__name__)

scheduler = AsyncIOScheduler(timezone=pytz.timezone(settings.TIMEZONE))


def todays_events(groups: List[Dict[str, Any]], on: date) -> List[Dict[str, Any]]:
    """Events of the group dated `on`; empty when there is none."""
    for group in groups:
        if parse_date(group.get("date") or "") == on:
            return list(group.get("events") or [])
    return []


async def has_unseen_celebrations(
    store: KeyValueStore,
    groups: List[Dict[str, Any]],
    on: date,
) -> bool:
    """True when there are events and they were not viewed today."""
    if not any(group.get("events") for group in groups):
        return False
    return await store.get(StoreKey.LAST_SEEN_NOTIFICATION) != on.isoformat()


async def mark_celebrations_seen(store: KeyValueStore, on: date) -> None:
    await store.set(StoreKey.LAST_SEEN_NOTIFICATION, on.isoformat())


async def notify_owner(bot: Bot, api: HrApi, owner_id: int, on: date,
                       session_factory: async_sessionmaker = async_session_maker) -> bool:
    """Send today's celebrations to one user. Returns True if a message went out."""
    store = SqlKeyValueStore(owner_id, session_factory)
    session = await SessionService(store).load()
    if session is None:
        return False

    user_api = HrApi(api.client, token=session.token, on_session_expired=store.clear)
    events = todays_events(await user_api.celebrations(), on)
    text = celebration_message(events)
    if text is None:
        return False

    await bot.send_message(chat_id=owner_id, text=text)
    logger.info("Celebration notification sent", owner_id=owner_id, events=len(events))
    return True


async def send_celebrations(
    bot: Bot,
    api: HrApi,
    session_factory: async_sessionmaker = async_session_maker,
) -> int:
    """Notify every signed-in user about today's events."""
    logger.info("Running celebration check")
    on = today()
    sent = 0

    owners = await SqlKeyValueStore.owners_with_key(StoreKey.TOKEN, session_factory)
    for owner_id in owners:
        try:
            if await notify_owner(bot, api, owner_id, on, session_factory):
                sent += 1
        except Exception as e:
            logger.error(
                "Error sending celebration notification",
                owner_id=owner_id,
                error=str(e),
            )

    return sent


def setup_scheduler(bot: Bot, api: HrApi) -> None:
    """Setup the scheduler with the bot instance."""
    scheduler.add_job(
        send_celebrations,
        trigger=CronTrigger(
            hour=settings.NOTIFICATION_HOUR,
            minute=0,
            timezone=pytz.timezone(settings.TIMEZONE),
        ),
        args=[bot, api],
        id="celebration_job",
        replace_existing=True,
    )

    logger.info(
        "Scheduler configured",
        hour=settings.NOTIFICATION_HOUR,
        timezone=settings.TIMEZONE,
    )


def start_scheduler() -> None:
    """Start the scheduler."""
    scheduler.start()
    logger.info("Scheduler started")


def shutdown_scheduler() -> None:
    """Shutdown the scheduler."""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Scheduler shutdown")
