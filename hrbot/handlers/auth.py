"""
Handler for authentication commands (/start, /login, /signup, /logout, ...).
"""
from typing import Optional

from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandStart
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from hrbot.config import settings
from hrbot.constants import Route
from hrbot.keyboards.inline import get_cancel_keyboard, CALLBACK_CANCEL
from hrbot.handlers.admin import send_dashboard
from hrbot.handlers.onboarding import open_wizard, send_profile
from hrbot.onboarding.resolver import apply_resume_point
from hrbot.onboarding.wizard import WizardPool
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionContext, SessionService
from hrbot.services.store import KeyValueStore
from hrbot.states.forms import AuthStates
from hrbot.onboarding.schemas import (
    validate_company_email,
    validate_new_password,
    PASSWORD_RULE,
)
from hrbot.logger import get_logger

logger = get_logger(__name__)

router = Router()


HELP_TEXT = """
👋 <b>HR Onboarding Bot</b>

<b>Account:</b>
/login — Sign in with your company email
/signup — Set a password for your account
/forgot — Request a password reset email
/reset — Set a new password with a reset code
/logout — Sign out

<b>Onboarding:</b>
/onboarding — Fill in your onboarding forms
/profile — Your profile

<b>Company:</b>
/contacts [name] — Employee directory
/policies — Company policies
/events — Birthdays and work anniversaries
/dashboard [name] — Employee dashboard (HR only)

/cancel — Cancel the current action
"""


# --- Helper Functions ---

async def _forget_message(message: Message) -> None:
    """Remove a message that contains a password."""
    try:
        await message.delete()
    except TelegramBadRequest as e:
        logger.warning("Failed to delete password message", error=str(e))


async def land(
    message: Message,
    owner_id: int,
    store: KeyValueStore,
    session: SessionContext,
    api: HrApi,
    wizards: WizardPool,
    state: Optional[FSMContext] = None,
) -> Route:
    """Send a freshly authenticated user to their resume point."""
    decision = await apply_resume_point(store, session.user)

    if decision.route == Route.DASHBOARD:
        await send_dashboard(message, session, api, state=state)
    elif decision.route.is_wizard:
        await open_wizard(message, owner_id, store, session, api, wizards)
    else:
        await send_profile(message, session, api)

    return decision.route


async def _start_session(
    message: Message,
    token: str,
    store: KeyValueStore,
    api: HrApi,
    wizards: WizardPool,
    state: Optional[FSMContext] = None,
) -> None:
    owner_id = message.from_user.id
    session = await SessionService(store).start(token)
    wizards.discard(owner_id)
    await message.answer("✅ Signed in successfully!")
    await land(message, owner_id, store, session, api.with_token(token), wizards, state)


# --- Start / Help ---

@router.message(CommandStart())
async def cmd_start(message: Message, state: FSMContext, session: Optional[SessionContext]):
    """Greet the user."""
    await state.clear()
    await message.answer(HELP_TEXT, parse_mode="HTML")
    if session is None:
        await message.answer("🔐 Please /login to continue.")


@router.message(Command("help"))
async def cmd_help(message: Message):
    await message.answer(HELP_TEXT, parse_mode="HTML")


# --- Cancel ---

@router.message(Command("cancel"))
async def cmd_cancel(message: Message, state: FSMContext):
    """Leave whatever dialog is in progress."""
    if await state.get_state() is None:
        await message.answer("❌ Nothing to cancel.")
        return
    await state.clear()
    await message.answer("❌ Cancelled.")


@router.callback_query(F.data == CALLBACK_CANCEL)
async def cancel_dialog(callback: CallbackQuery, state: FSMContext):
    """Cancel button on any dialog."""
    await state.clear()
    try:
        await callback.message.edit_text("❌ Cancelled.")
    except TelegramBadRequest as e:
        logger.warning("Failed to edit cancelled message", error=str(e))
    await callback.answer()


# --- Login ---

@router.message(Command("login"))
async def cmd_login(message: Message, state: FSMContext):
    """Start the login dialog."""
    await state.clear()
    await message.answer(
        f"📧 Enter your company email (@{settings.EMAIL_DOMAIN}):",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(AuthStates.login_email)


@router.message(AuthStates.login_email, F.text)
async def process_login_email(message: Message, state: FSMContext):
    email = message.text.strip().lower()
    error = validate_company_email(email, settings.EMAIL_DOMAIN)
    if error:
        await message.answer(f"❌ {error} Please try again:")
        return

    await state.update_data(email=email)
    await message.answer("🔑 Enter your password:", reply_markup=get_cancel_keyboard())
    await state.set_state(AuthStates.login_password)


@router.message(AuthStates.login_password, F.text)
async def process_login_password(
    message: Message,
    state: FSMContext,
    store: KeyValueStore,
    api: HrApi,
    wizards: WizardPool,
):
    password = message.text
    await _forget_message(message)
    data = await state.get_data()

    token = await api.login(data["email"], password)
    if not token:
        await message.answer(
            "❌ Invalid email or password. Enter your password again or /cancel:"
        )
        return

    await state.clear()
    logger.info("User logged in", chat_id=message.chat.id)
    await _start_session(message, token, store, api, wizards, state)


# --- Signup ---

@router.message(Command("signup"))
async def cmd_signup(message: Message, state: FSMContext):
    """Start the signup dialog."""
    await state.clear()
    await message.answer(
        f"📧 Enter your company email (@{settings.EMAIL_DOMAIN}):",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(AuthStates.signup_email)


@router.message(AuthStates.signup_email, F.text)
async def process_signup_email(message: Message, state: FSMContext):
    email = message.text.strip().lower()
    error = validate_company_email(email, settings.EMAIL_DOMAIN)
    if error:
        await message.answer(f"❌ {error} Please try again:")
        return

    await state.update_data(email=email)
    await message.answer(
        f"🔑 Choose a password.\n{PASSWORD_RULE}",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(AuthStates.signup_password)


@router.message(AuthStates.signup_password, F.text)
async def process_signup_password(message: Message, state: FSMContext):
    password = message.text
    await _forget_message(message)

    error = validate_new_password(password, password)
    if error:
        await message.answer(f"❌ {error}\nPlease choose another password:")
        return

    await state.update_data(password=password)
    await message.answer("🔑 Confirm your password:", reply_markup=get_cancel_keyboard())
    await state.set_state(AuthStates.signup_confirm)


@router.message(AuthStates.signup_confirm, F.text)
async def process_signup_confirm(
    message: Message,
    state: FSMContext,
    store: KeyValueStore,
    api: HrApi,
    wizards: WizardPool,
):
    confirm = message.text
    await _forget_message(message)
    data = await state.get_data()

    error = validate_new_password(data["password"], confirm)
    if error:
        await message.answer(f"❌ {error}\nChoose a password again:")
        await state.set_state(AuthStates.signup_password)
        return

    await state.clear()
    token = await api.signup(data["email"], data["password"])
    if not token:
        await message.answer("❌ Sign up failed. Please check your email or try /login.")
        return

    logger.info("User signed up", chat_id=message.chat.id)
    await _start_session(message, token, store, api, wizards, state)


# --- Forgot / reset password ---

@router.message(Command("forgot"))
async def cmd_forgot(message: Message, state: FSMContext):
    """Request a password reset email."""
    await state.clear()
    await message.answer(
        "📧 Enter the email of your account:",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(AuthStates.forgot_email)


@router.message(AuthStates.forgot_email, F.text)
async def process_forgot_email(message: Message, state: FSMContext, api: HrApi):
    email = message.text.strip().lower()
    error = validate_company_email(email, settings.EMAIL_DOMAIN)
    if error:
        await message.answer(f"❌ {error} Please try again:")
        return

    await state.clear()
    if await api.forgot_password(email):
        await message.answer(
            "📨 A reset link has been sent to your email.\n"
            "Use /reset with the code from that email."
        )
    else:
        await message.answer("❌ Could not send the reset email. Please try again later.")


@router.message(Command("reset"))
async def cmd_reset(message: Message, state: FSMContext):
    """Set a new password with the emailed reset code."""
    await state.clear()
    await message.answer(
        "🔑 Enter the reset code from your email:",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(AuthStates.reset_token)


@router.message(AuthStates.reset_token, F.text)
async def process_reset_token(message: Message, state: FSMContext):
    await state.update_data(reset_token=message.text.strip())
    await message.answer(
        f"🔑 Enter a new password.\n{PASSWORD_RULE}",
        reply_markup=get_cancel_keyboard(),
    )
    await state.set_state(AuthStates.reset_password)


@router.message(AuthStates.reset_password, F.text)
async def process_reset_password(message: Message, state: FSMContext):
    password = message.text
    await _forget_message(message)

    error = validate_new_password(password, password)
    if error:
        await message.answer(f"❌ {error}\nPlease choose another password:")
        return

    await state.update_data(password=password)
    await message.answer("🔑 Confirm the new password:", reply_markup=get_cancel_keyboard())
    await state.set_state(AuthStates.reset_confirm)


@router.message(AuthStates.reset_confirm, F.text)
async def process_reset_confirm(message: Message, state: FSMContext, api: HrApi):
    confirm = message.text
    await _forget_message(message)
    data = await state.get_data()

    error = validate_new_password(data["password"], confirm)
    if error:
        await message.answer(f"❌ {error}\nEnter the new password again:")
        await state.set_state(AuthStates.reset_password)
        return

    await state.clear()
    if await api.reset_password(data["reset_token"], data["password"]):
        await message.answer("✅ Password updated. You can /login now.")
    else:
        await message.answer("❌ The reset code is invalid or expired. Try /forgot again.")


# --- Logout ---

@router.message(Command("logout"))
async def cmd_logout(
    message: Message,
    state: FSMContext,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """End the session and forget everything stored for this user."""
    await state.clear()
    if session is None:
        await message.answer("You are not signed in.")
        return

    if not await api.logout():
        logger.warning("Server logout failed", user_id=session.user_id)

    await SessionService(store).end()
    wizards.discard(message.from_user.id)
    await message.answer("👋 Signed out.")
