"""
Handler for company information commands (/profile, /contacts, /policies, /events).
"""
from io import BytesIO
from typing import Optional

from aiogram import Router, F, Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from hrbot.config import settings
from hrbot.constants import Permission
from hrbot.handlers.onboarding import LOGIN_REQUIRED, send_profile
from hrbot.keyboards.inline import (
    get_cancel_keyboard,
    get_pagination_keyboard,
    get_policies_keyboard,
    CALLBACK_CONTACTS_PAGE,
    CALLBACK_POLICY_ADD,
    CALLBACK_POLICY_DELETE,
)
from hrbot.scheduler.notifications import has_unseen_celebrations, mark_celebrations_seen
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionContext, can_manage
from hrbot.services.store import KeyValueStore
from hrbot.services.uploads import UploadError, upload_policy
from hrbot.states.forms import AdminStates
from hrbot.utils.date_utils import today
from hrbot.utils.formatting import format_celebrations, format_contacts, format_policies
from hrbot.logger import get_logger

logger = get_logger(__name__)

router = Router()


# --- Profile ---

@router.message(Command("profile"))
async def cmd_profile(message: Message, session: Optional[SessionContext], api: HrApi):
    """Show the signed-in user's profile."""
    if session is None:
        await message.answer(LOGIN_REQUIRED)
        return
    await send_profile(message, session, api)


# --- Contacts ---

async def _contacts_page(api: HrApi, search: str, page: int):
    limit = settings.CONTACTS_PAGE_SIZE
    employees = await api.contacts(search=search, page=page, limit=limit)
    text = format_contacts(employees, page, search)
    keyboard = get_pagination_keyboard(
        CALLBACK_CONTACTS_PAGE, page, has_next=len(employees) == limit
    )
    return text, keyboard


@router.message(Command("contacts"))
async def cmd_contacts(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Search the employee directory."""
    if session is None:
        await message.answer(LOGIN_REQUIRED)
        return

    search = command.args.strip() if command.args else ""
    await state.update_data(contacts_search=search)

    text, keyboard = await _contacts_page(api, search, 1)
    await message.answer(text, reply_markup=keyboard, parse_mode="HTML")


@router.callback_query(F.data.startswith(CALLBACK_CONTACTS_PAGE))
async def contacts_page(
    callback: CallbackQuery,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Switch the directory page in place."""
    if session is None:
        await callback.answer(LOGIN_REQUIRED, show_alert=True)
        return

    page = max(int(callback.data[len(CALLBACK_CONTACTS_PAGE):] or 1), 1)
    data = await state.get_data()
    text, keyboard = await _contacts_page(api, data.get("contacts_search", ""), page)

    try:
        await callback.message.edit_text(text, reply_markup=keyboard, parse_mode="HTML")
    except TelegramBadRequest as e:
        logger.warning("Failed to update contacts page", error=str(e))
    await callback.answer()


# --- Policies ---

def _policies_keyboard(session: SessionContext, policies):
    return get_policies_keyboard(
        policies,
        can_delete=can_manage(session, Permission.DELETE_POLICY),
        can_add=can_manage(session, Permission.ADD_POLICY),
    )


async def _send_policies(message: Message, session: SessionContext, api: HrApi) -> None:
    policies = await api.policies()
    await message.answer(
        format_policies(policies),
        reply_markup=_policies_keyboard(session, policies),
        parse_mode="HTML",
        disable_web_page_preview=True,
    )


@router.message(Command("policies"))
async def cmd_policies(message: Message, session: Optional[SessionContext], api: HrApi):
    """List company policy documents."""
    if session is None:
        await message.answer(LOGIN_REQUIRED)
        return
    await _send_policies(message, session, api)


@router.callback_query(F.data == CALLBACK_POLICY_ADD)
async def upload_policy_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    session: Optional[SessionContext],
):
    """Ask for the policy document to upload."""
    if not can_manage(session, Permission.ADD_POLICY):
        await callback.answer("⛔ You cannot upload policies.", show_alert=True)
        return

    await state.set_state(AdminStates.policy_upload)
    await callback.message.answer(
        f"📤 Send the policy document "
        f"(max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB):",
        reply_markup=get_cancel_keyboard(),
    )
    await callback.answer()


@router.message(AdminStates.policy_upload, F.document)
async def process_policy_document(
    message: Message,
    bot: Bot,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Upload the received file as a new policy and show the updated list."""
    document = message.document
    if not can_manage(session, Permission.ADD_POLICY):
        await state.clear()
        await message.answer("⛔ You cannot upload policies.")
        return

    if document.file_size and document.file_size > settings.MAX_UPLOAD_BYTES:
        await message.answer(
            f"❌ File too large. Please select a file smaller than "
            f"{settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB."
        )
        return

    await state.clear()
    buffer = BytesIO()
    await bot.download(document, destination=buffer)
    file_name = document.file_name or "policy"

    try:
        await upload_policy(
            api,
            session.user_id,
            file_name,
            buffer.getvalue(),
            content_type=document.mime_type,
            max_bytes=settings.MAX_UPLOAD_BYTES,
        )
    except UploadError as e:
        logger.warning("Policy upload failed", user_id=session.user_id, error=str(e))
        await message.answer("❌ Policy upload failed.")
        return

    await message.answer(f"✅ {file_name} policy uploaded successfully!")
    await _send_policies(message, session, api)


@router.message(AdminStates.policy_upload)
async def process_policy_not_a_document(message: Message):
    await message.answer("❌ Please send the policy as a document.")


@router.callback_query(F.data.startswith(CALLBACK_POLICY_DELETE))
async def delete_policy(
    callback: CallbackQuery,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Remove a policy document."""
    if not can_manage(session, Permission.DELETE_POLICY):
        await callback.answer("⛔ You cannot delete policies.", show_alert=True)
        return

    policy_id = callback.data[len(CALLBACK_POLICY_DELETE):]
    if not await api.delete_policy(policy_id):
        await callback.answer("❌ Failed to delete policy.", show_alert=True)
        return

    logger.info("Policy deleted", policy_id=policy_id, user_id=session.user_id)
    await callback.answer("🗑 Policy deleted.")

    policies = await api.policies()
    try:
        await callback.message.edit_text(
            format_policies(policies),
            reply_markup=_policies_keyboard(session, policies),
            parse_mode="HTML",
            disable_web_page_preview=True,
        )
    except TelegramBadRequest as e:
        logger.warning("Failed to update policies message", error=str(e))


# --- Events ---

@router.message(Command("events"))
async def cmd_events(
    message: Message,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Show birthdays and anniversaries, and mark them as seen."""
    if session is None:
        await message.answer(LOGIN_REQUIRED)
        return

    on = today()
    groups = await api.celebrations()
    is_new = await has_unseen_celebrations(store, groups, on)

    text = format_celebrations(groups, on)
    if is_new:
        text = "🔔 <b>New!</b>\n" + text
    await message.answer(text, parse_mode="HTML")

    await mark_celebrations_seen(store, on)
