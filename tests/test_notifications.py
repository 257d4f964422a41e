"""Tests for celebration notifications and their formatting."""

from datetime import date, timedelta

import pytest

from hrbot.constants import StoreKey
from hrbot.scheduler.notifications import (
    has_unseen_celebrations,
    mark_celebrations_seen,
    send_celebrations,
    todays_events,
)
from hrbot.services.session import SessionService
from hrbot.services.store import MemoryKeyValueStore, SqlKeyValueStore
from hrbot.utils.date_utils import format_date, today
from hrbot.utils.formatting import (
    celebration_message,
    describe_event,
    format_celebrations,
    ordinal,
)
from tests.conftest import make_token

NOTIFICATION_PATH = "/notifications/user-anniversaries-birthdays"
ON = date(2024, 3, 1)

GROUPS = [
    {"date": "2024-03-01", "events": [
        {"fullName": "Jane Doe", "type": "birthday"},
        {"fullName": "Raj Patel", "type": "anniversary", "years": 3},
    ]},
    {"date": "2024-03-04", "events": [
        {"fullName": "Anu Rao", "type": "anniversary", "years": 0},
    ]},
]


class FakeBot:
    """Records send_message calls; chats listed in `fail_for` raise."""

    def __init__(self, fail_for=()):
        self.sent = []
        self.fail_for = set(fail_for)

    async def send_message(self, chat_id, text, **kwargs):
        if chat_id in self.fail_for:
            raise RuntimeError("chat not found")
        self.sent.append((chat_id, text))


# ── Event selection ──────────────────────────────────────────────

class TestTodaysEvents:
    def test_picks_group_for_date(self):
        events = todays_events(GROUPS, ON)
        assert [e["fullName"] for e in events] == ["Jane Doe", "Raj Patel"]

    def test_no_group_for_date(self):
        assert todays_events(GROUPS, date(2024, 3, 2)) == []

    def test_accepts_datetime_strings(self):
        groups = [{"date": "2024-03-01T00:00:00.000Z", "events": [{"fullName": "A"}]}]
        assert todays_events(groups, ON) == [{"fullName": "A"}]


@pytest.mark.asyncio
class TestUnseenCelebrations:
    async def test_new_until_marked_seen(self):
        store = MemoryKeyValueStore()
        assert await has_unseen_celebrations(store, GROUPS, ON)

        await mark_celebrations_seen(store, ON)

        assert store.data["lastSeenNotification"] == "2024-03-01"
        assert not await has_unseen_celebrations(store, GROUPS, ON)
        assert await has_unseen_celebrations(store, GROUPS, ON + timedelta(days=1))

    async def test_no_events_is_never_new(self):
        store = MemoryKeyValueStore()
        assert not await has_unseen_celebrations(store, [], ON)
        assert not await has_unseen_celebrations(store, [{"date": "2024-03-01", "events": []}], ON)


# ── Formatting ───────────────────────────────────────────────────

class TestFormatting:
    @pytest.mark.parametrize("num,expected", [
        (1, "1st"), (2, "2nd"), (3, "3rd"), (4, "4th"),
        (11, "11th"), (12, "12th"), (13, "13th"), (21, "21st"), (112, "112th"),
    ])
    def test_ordinal(self, num, expected):
        assert ordinal(num) == expected

    def test_format_date(self):
        assert format_date("2024-01-01") == "Jan 1st 2024"
        assert format_date(date(2024, 3, 22)) == "Mar 22nd 2024"
        assert format_date("garbage") == "N/A"
        assert format_date(None) == "N/A"

    def test_describe_event(self):
        later = ON + timedelta(days=3)
        birthday = {"type": "birthday"}
        assert describe_event(birthday, ON, ON) == "Birthday is today 🎉"
        assert describe_event(birthday, later, ON) == "Upcoming Birthday 🎉"
        assert describe_event({"type": "anniversary", "years": 0}, ON, ON) == "Joined today 🎊"
        assert describe_event({"type": "anniversary", "years": 2}, ON, ON) == (
            "Completed 2nd anniversary 🎊"
        )
        assert describe_event({"type": "anniversary", "years": 5}, later, ON) == (
            "Celebrating 5th anniversary 🎊"
        )

    def test_format_celebrations(self):
        text = format_celebrations(GROUPS + [{"date": "nope", "events": []}], ON)
        assert "Mar 1st 2024" in text
        assert "Mar 4th 2024" in text
        assert "Jane Doe — Birthday is today 🎉" in text
        assert "Raj Patel — Completed 3rd anniversary 🎊" in text
        assert "nope" not in text

    def test_format_celebrations_empty(self):
        assert "No upcoming birthdays" in format_celebrations([], ON)

    def test_celebration_message(self):
        assert celebration_message([]) is None
        text = celebration_message(todays_events(GROUPS, ON))
        assert text == (
            "🎉 Today's Events\n\n"
            "Celebrations: Jane Doe (Birthday), Raj Patel (Anniversary)"
        )

    def test_celebration_message_escapes_names(self):
        text = celebration_message([{"fullName": "<b>Eve</b>", "type": "birthday"}])
        assert "&lt;b&gt;Eve&lt;/b&gt;" in text


# ── Daily job ────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSendCelebrations:
    """The daily job notifies every signed-in user."""

    async def _sign_in(self, owner_id, session_factory):
        store = SqlKeyValueStore(owner_id, session_factory)
        await SessionService(store).start(make_token(userId=owner_id, role="EMPLOYEE"))

    async def test_sends_to_each_signed_in_user(self, api, server, session_factory):
        server.on("GET", NOTIFICATION_PATH, json_body=[
            {"date": today().isoformat(), "events": [{"fullName": "Jane Doe", "type": "birthday"}]},
        ])
        for owner_id in (101, 102, 103):
            await self._sign_in(owner_id, session_factory)
        # signed out users keep no token
        await SqlKeyValueStore(104, session_factory).set(StoreKey.ACTIVE_STEP, "0")
        bot = FakeBot(fail_for={102})

        sent = await send_celebrations(bot, api, session_factory)

        assert sent == 2
        assert [chat_id for chat_id, _ in bot.sent] == [101, 103]
        assert "Jane Doe (Birthday)" in bot.sent[0][1]

    async def test_uses_each_users_token(self, api, server, session_factory):
        server.on("GET", NOTIFICATION_PATH, json_body=[])
        await self._sign_in(101, session_factory)

        await send_celebrations(FakeBot(), api, session_factory)

        token = await SqlKeyValueStore(101, session_factory).get(StoreKey.TOKEN)
        assert server.requests[0].headers["Authorization"] == f"Bearer {token}"

    async def test_nothing_today(self, api, server, session_factory):
        yesterday = (today() - timedelta(days=1)).isoformat()
        server.on("GET", NOTIFICATION_PATH, json_body=[
            {"date": yesterday, "events": [{"fullName": "Jane Doe", "type": "birthday"}]},
        ])
        await self._sign_in(101, session_factory)
        bot = FakeBot()

        assert await send_celebrations(bot, api, session_factory) == 0
        assert bot.sent == []

    async def test_expired_session_is_cleared(self, api, server, session_factory):
        server.on("GET", NOTIFICATION_PATH, status=401)
        await self._sign_in(101, session_factory)

        assert await send_celebrations(FakeBot(), api, session_factory) == 0
        assert await SqlKeyValueStore(101, session_factory).get(StoreKey.TOKEN) is None
