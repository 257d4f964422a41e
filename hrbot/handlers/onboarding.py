"""
Handler for the /onboarding wizard.
"""
from io import BytesIO
from typing import Optional, Union

from aiogram import Router, F, Bot
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from hrbot.config import settings
from hrbot.constants import Route
from hrbot.keyboards.inline import (
    get_cancel_keyboard,
    get_wizard_keyboard,
    CALLBACK_ACCEPT,
    CALLBACK_BACK,
    CALLBACK_DETACH,
    CALLBACK_EDIT,
    CALLBACK_JUMP,
    CALLBACK_NEXT,
    CALLBACK_NOOP,
    CALLBACK_SAVE,
    CALLBACK_UPLOAD,
)
from hrbot.onboarding.schemas import AGREEMENT_DOCUMENT, DOCUMENT_TYPES
from hrbot.onboarding.steps import AgreementStep, DocumentsStep, StepContext
from hrbot.onboarding.wizard import NextOutcome, WizardController, WizardPool
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionContext, is_special_user
from hrbot.services.store import KeyValueStore
from hrbot.services.uploads import PDF
from hrbot.states.forms import WizardStates
from hrbot.utils.formatting import format_profile, format_step
from hrbot.logger import get_logger

logger = get_logger(__name__)

router = Router()

LOGIN_REQUIRED = "🔐 Please /login first."

DATE_FIELDS = ("dateOfBirth",)


# --- Helper Functions ---

async def get_wizard(
    owner_id: int,
    store: KeyValueStore,
    session: SessionContext,
    api: HrApi,
    wizards: WizardPool,
) -> WizardController:
    """Return the user's wizard, mounting it from the store if needed."""
    return await wizards.get_or_mount(
        owner_id,
        lambda: WizardController(
            store,
            session.user,
            context=StepContext(api=api, store=store, session=session),
        ),
    )


async def render_wizard(
    target: Union[Message, CallbackQuery],
    wizard: WizardController,
) -> None:
    """Show the active step; edit in place when answering a button."""
    text = format_step(wizard)
    keyboard = get_wizard_keyboard(wizard)

    if isinstance(target, CallbackQuery):
        try:
            await target.message.edit_text(text, reply_markup=keyboard, parse_mode="HTML")
            return
        except TelegramBadRequest as e:
            if "message is not modified" in str(e):
                return
            logger.warning("Failed to edit wizard message", error=str(e))
        target = target.message

    await target.answer(text, reply_markup=keyboard, parse_mode="HTML")


async def send_profile(message: Message, session: SessionContext, api: HrApi) -> None:
    """Show the profile screen."""
    profile = await api.profile(session.user_id)
    if not profile:
        await message.answer("❌ Could not load your profile. Please try again later.")
        return
    await message.answer(format_profile(profile), parse_mode="HTML")


async def open_wizard(
    message: Message,
    owner_id: int,
    store: KeyValueStore,
    session: SessionContext,
    api: HrApi,
    wizards: WizardPool,
) -> Optional[WizardController]:
    """Mount (or reuse) the wizard and show its active step."""
    if not is_special_user(session.user) and not session.user.edit_rights:
        await message.answer(
            "🔒 Your details are locked for editing.\n"
            "Please contact HR if something needs to change."
        )
        return None

    wizard = await get_wizard(owner_id, store, session, api, wizards)
    await render_wizard(message, wizard)
    return wizard


async def _wizard_for_callback(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
) -> Optional[WizardController]:
    if session is None:
        await callback.answer(LOGIN_REQUIRED, show_alert=True)
        return None
    return await get_wizard(callback.from_user.id, store, session, api, wizards)


# --- Command Handler ---

@router.message(Command("onboarding"))
async def cmd_onboarding(
    message: Message,
    state: FSMContext,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Open the onboarding wizard."""
    if session is None:
        await message.answer(LOGIN_REQUIRED)
        return

    await state.clear()
    await open_wizard(message, message.from_user.id, store, session, api, wizards)


# --- Navigation ---

@router.callback_query(F.data == CALLBACK_NEXT)
async def wizard_next(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Submit the active step."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    async def to_profile(route: Route) -> None:
        await callback.message.answer("✅ Your details have been submitted.")
        await send_profile(callback.message, session, api)

    wizard.on_navigate = to_profile
    outcome = await wizard.go_next()

    if outcome == NextOutcome.REJECTED:
        await callback.answer("⏳ Please wait, still working on it...")
        return

    await callback.answer()
    if outcome == NextOutcome.PROFILE:
        return
    if outcome == NextOutcome.COMPLETED:
        await callback.message.answer("🎉 Onboarding complete! Thank you.")
    await render_wizard(callback, wizard)


@router.callback_query(F.data == CALLBACK_BACK)
async def wizard_back(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Go one step back."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    if await wizard.go_back():
        await render_wizard(callback, wizard)
    await callback.answer()


@router.callback_query(F.data.startswith(CALLBACK_JUMP))
async def wizard_jump(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Jump to a step already reached."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    try:
        index = int(callback.data[len(CALLBACK_JUMP):])
    except ValueError:
        await callback.answer()
        return

    if await wizard.jump_to_step(index):
        await render_wizard(callback, wizard)
        await callback.answer()
    else:
        await callback.answer("Complete the current step first.")


@router.callback_query(F.data == CALLBACK_SAVE)
async def wizard_save(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Save the active step as a draft."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    await wizard.save()
    await callback.answer(wizard.current.notice or None)
    await render_wizard(callback, wizard)


@router.callback_query(F.data == CALLBACK_NOOP)
async def noop(callback: CallbackQuery):
    await callback.answer()


# --- Field editing ---

@router.callback_query(F.data.startswith(CALLBACK_EDIT))
async def wizard_edit_field(
    callback: CallbackQuery,
    state: FSMContext,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Ask for a new value of one field."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    field = callback.data[len(CALLBACK_EDIT):]
    labels = dict(wizard.current.fields())
    if field not in labels:
        await callback.answer("Unknown field.")
        return

    await state.set_state(WizardStates.field_value)
    await state.update_data(field=field, step=wizard.current_step)

    hint = " (format: YYYY-MM-DD)" if field in DATE_FIELDS else ""
    await callback.message.answer(
        f"✏️ Enter {labels[field]}{hint}:",
        reply_markup=get_cancel_keyboard(),
    )
    await callback.answer()


@router.message(WizardStates.field_value, F.text)
async def process_field_value(
    message: Message,
    state: FSMContext,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Store a typed value in the draft of the active step."""
    data = await state.get_data()
    await state.clear()

    if session is None:
        await message.answer(LOGIN_REQUIRED)
        return

    wizard = await get_wizard(message.from_user.id, store, session, api, wizards)
    if data.get("step") != wizard.current_step:
        await message.answer("⚠️ The step has changed, please pick the field again.")
        await render_wizard(message, wizard)
        return

    wizard.current.set_value(data["field"], message.text.strip())
    await render_wizard(message, wizard)


# --- Documents and agreement ---

@router.callback_query(F.data.startswith(CALLBACK_UPLOAD))
async def wizard_upload_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Ask the user to send a PDF for a document slot."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    document_type = callback.data[len(CALLBACK_UPLOAD):]
    if document_type not in DOCUMENT_TYPES and document_type != AGREEMENT_DOCUMENT:
        await callback.answer("Unknown document type.")
        return

    await state.set_state(WizardStates.document_upload)
    await state.update_data(document_type=document_type, step=wizard.current_step)

    title = DOCUMENT_TYPES.get(document_type, "signed agreement")
    await callback.message.answer(
        f"📎 Send {title} as a PDF file (max {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB):",
        reply_markup=get_cancel_keyboard(),
    )
    await callback.answer()


@router.message(WizardStates.document_upload, F.document)
async def process_document(
    message: Message,
    bot: Bot,
    state: FSMContext,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Upload the received file and attach it to the active step."""
    document = message.document
    data = await state.get_data()

    if session is None:
        await state.clear()
        await message.answer(LOGIN_REQUIRED)
        return

    if document.mime_type != PDF:
        await message.answer("❌ Only PDF files are accepted. Please send a PDF:")
        return

    if document.file_size and document.file_size > settings.MAX_UPLOAD_BYTES:
        await message.answer(
            f"❌ File too large. Please select a file smaller than "
            f"{settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB."
        )
        return

    await state.clear()
    wizard = await get_wizard(message.from_user.id, store, session, api, wizards)
    step = wizard.current
    if data.get("step") != wizard.current_step or not isinstance(step, (DocumentsStep, AgreementStep)):
        await message.answer("⚠️ The step has changed, please choose the document again.")
        await render_wizard(message, wizard)
        return

    buffer = BytesIO()
    await bot.download(document, destination=buffer)
    content = buffer.getvalue()
    file_name = document.file_name or f"{data['document_type']}.pdf"

    if isinstance(step, AgreementStep):
        await step.attach(file_name, content, document.mime_type)
    else:
        await step.attach(data["document_type"], file_name, content, document.mime_type)

    await render_wizard(message, wizard)


@router.message(WizardStates.document_upload)
async def process_not_a_document(message: Message):
    await message.answer("❌ Please send the file as a PDF document.")


@router.callback_query(F.data.startswith(CALLBACK_DETACH))
async def wizard_detach(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Delete an uploaded document."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    step = wizard.current
    if not isinstance(step, DocumentsStep):
        await callback.answer()
        return

    await step.detach(callback.data[len(CALLBACK_DETACH):])
    await callback.answer(step.notice or None)
    await render_wizard(callback, wizard)


@router.callback_query(F.data == CALLBACK_ACCEPT)
async def wizard_accept(
    callback: CallbackQuery,
    store: KeyValueStore,
    session: Optional[SessionContext],
    api: HrApi,
    wizards: WizardPool,
):
    """Toggle the agreement acknowledgement."""
    wizard = await _wizard_for_callback(callback, store, session, api, wizards)
    if wizard is None:
        return

    step = wizard.current
    if isinstance(step, AgreementStep):
        step.accept(not step.values.get("accepted"))
        await render_wizard(callback, wizard)
    await callback.answer()
