"""
Handler for the admin dashboard (/dashboard) and employee actions.
"""
from html import escape
from typing import Optional

from aiogram import Router, F
from aiogram.exceptions import TelegramBadRequest
from aiogram.filters import Command, CommandObject
from aiogram.fsm.context import FSMContext
from aiogram.types import CallbackQuery, Message

from hrbot.config import settings
from hrbot.constants import Permission
from hrbot.keyboards.inline import (
    get_cancel_keyboard,
    get_confirm_delete_keyboard,
    get_dashboard_keyboard,
    get_employee_actions_keyboard,
    get_pagination_keyboard,
    CALLBACK_CONFIRM_DELETE,
    CALLBACK_DASHBOARD_PAGE,
    CALLBACK_DEACTIVATE,
    CALLBACK_DELETE,
    CALLBACK_EDIT_RIGHTS,
    CALLBACK_EMPLOYEE_ADD,
    CALLBACK_EMPLOYEE_EDIT,
    CALLBACK_REMINDER,
)
from hrbot.onboarding.schemas import EDIT_MODE
from hrbot.services.employees import (
    ADD_MODE,
    apply_answer,
    employee_values,
    first_invalid_field,
    next_field,
    prompt_for,
    validate_employee,
)
from hrbot.services.hr_api import HrApi
from hrbot.services.session import SessionContext, can_manage, can_view_dashboard
from hrbot.states.forms import AdminStates
from hrbot.utils.formatting import format_employee
from hrbot.logger import get_logger

logger = get_logger(__name__)

router = Router()

ACCESS_DENIED = "⛔ This action is available to HR only."


# --- Helper Functions ---

def _actions_keyboard(session: SessionContext, employee: dict):
    return get_employee_actions_keyboard(
        employee,
        can_edit=can_manage(session, Permission.EDIT_USER_DETAILS),
        can_toggle_rights=can_manage(session, Permission.UPDATE_EDIT_RIGHTS),
        can_remind=can_manage(session, Permission.SEND_REMINDER_MAIL),
        can_deactivate=can_manage(session, Permission.DELETE_USER),
        can_delete=can_manage(session, Permission.DELETE_PERMANENTLY),
    )


async def send_dashboard(
    message: Message,
    session: SessionContext,
    api: HrApi,
    search: str = "",
    page: int = 1,
    state: Optional[FSMContext] = None,
) -> None:
    """Send one dashboard page: a card per employee, then pagination.

    The rows are cached in the FSM data so Edit can prefill the form.
    """
    limit = settings.CONTACTS_PAGE_SIZE
    employees = await api.employees(search=search, page=page, limit=limit)
    if state is not None:
        await state.update_data(dashboard_employees={
            str(e["userId"]): e for e in employees if e.get("userId") is not None
        })

    title = "📊 <b>Employee Dashboard</b>"
    if search:
        title += f" — “{escape(search)}”"
    header = get_dashboard_keyboard() if can_manage(session, Permission.ADD_USER) else None

    if not employees:
        await message.answer(
            f"{title}\n\nNo employees found.", reply_markup=header, parse_mode="HTML"
        )
        return

    await message.answer(f"{title} — page {page}", reply_markup=header, parse_mode="HTML")
    for employee in employees:
        await message.answer(
            format_employee(employee),
            reply_markup=_actions_keyboard(session, employee),
            parse_mode="HTML",
        )

    pagination = get_pagination_keyboard(
        CALLBACK_DASHBOARD_PAGE, page, has_next=len(employees) == limit
    )
    if pagination:
        await message.answer("Pages:", reply_markup=pagination)


def _target_id(data: str, prefix: str) -> str:
    return data[len(prefix):]


async def _guard(callback: CallbackQuery, session: Optional[SessionContext],
                 permission: Permission) -> bool:
    if not can_view_dashboard(session) or not can_manage(session, permission):
        await callback.answer(ACCESS_DENIED, show_alert=True)
        return False
    return True


# --- Dashboard Command ---

@router.message(Command("dashboard"))
async def cmd_dashboard(
    message: Message,
    command: CommandObject,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    """List employees, optionally filtered by a search string."""
    if not can_view_dashboard(session):
        await message.answer(ACCESS_DENIED)
        return

    search = command.args.strip() if command.args else ""
    await state.update_data(dashboard_search=search)
    await send_dashboard(message, session, api, search=search, state=state)


@router.callback_query(F.data.startswith(CALLBACK_DASHBOARD_PAGE))
async def dashboard_page(
    callback: CallbackQuery,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    if not can_view_dashboard(session):
        await callback.answer(ACCESS_DENIED, show_alert=True)
        return

    page = max(int(_target_id(callback.data, CALLBACK_DASHBOARD_PAGE) or 1), 1)
    data = await state.get_data()
    await callback.answer()
    await send_dashboard(
        callback.message, session, api,
        search=data.get("dashboard_search", ""), page=page, state=state,
    )


# --- Add / Edit Employee ---

async def _ask_employee_field(
    message: Message,
    state: FSMContext,
    field: str,
    values: dict,
    mode: str,
) -> None:
    await state.update_data(employee_field=field, employee_values=values)
    await message.answer(
        prompt_for(field, values, mode),
        reply_markup=get_cancel_keyboard(),
        parse_mode="HTML",
    )


async def _finish_employee_dialog(state: FSMContext) -> None:
    """Leave the dialog but keep the dashboard search and cached rows."""
    data = await state.get_data()
    await state.set_state(None)
    await state.set_data({k: v for k, v in data.items() if not k.startswith("employee_")})


@router.callback_query(F.data == CALLBACK_EMPLOYEE_ADD)
async def add_employee_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    session: Optional[SessionContext],
):
    """Start the new-employee dialog."""
    if not await _guard(callback, session, Permission.ADD_USER):
        return

    values = employee_values()
    await state.set_state(AdminStates.employee_field)
    await state.update_data(employee_mode=ADD_MODE, employee_id=None, employee_review=False)
    await callback.message.answer("➕ <b>New employee</b>", parse_mode="HTML")
    await _ask_employee_field(
        callback.message, state, next_field(ADD_MODE, values), values, ADD_MODE
    )
    await callback.answer()


@router.callback_query(F.data.startswith(CALLBACK_EMPLOYEE_EDIT))
async def edit_employee_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    session: Optional[SessionContext],
):
    """Start editing an employee listed on the dashboard."""
    if not await _guard(callback, session, Permission.EDIT_USER_DETAILS):
        return

    user_id = _target_id(callback.data, CALLBACK_EMPLOYEE_EDIT)
    data = await state.get_data()
    employee = (data.get("dashboard_employees") or {}).get(user_id)
    if employee is None:
        await callback.answer("Employee not found. Please reopen /dashboard.", show_alert=True)
        return

    values = employee_values(employee)
    await state.set_state(AdminStates.employee_field)
    await state.update_data(employee_mode=EDIT_MODE, employee_id=user_id, employee_review=False)
    await callback.message.answer(
        f"✏️ Editing <b>{escape(values['firstName'])} {escape(values['lastName'])}</b>",
        parse_mode="HTML",
    )
    await _ask_employee_field(
        callback.message, state, next_field(EDIT_MODE, values), values, EDIT_MODE
    )
    await callback.answer()


@router.message(AdminStates.employee_field, F.text)
async def process_employee_field(
    message: Message,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Store one answer, then ask the next field or submit the form."""
    data = await state.get_data()
    mode = data["employee_mode"]
    field = data["employee_field"]
    values = apply_answer(data["employee_values"], field, message.text)

    upcoming = None if data.get("employee_review") else next_field(mode, values, after=field)
    if upcoming is not None:
        await _ask_employee_field(message, state, upcoming, values, mode)
        return

    payload, errors = validate_employee(values, mode)
    invalid = first_invalid_field(mode, values, errors)
    if invalid is not None:
        await state.update_data(employee_review=True)
        await message.answer(
            "❌ Please correct the errors in the form:\n"
            + "\n".join(f"• {error}" for error in errors.values())
        )
        await _ask_employee_field(message, state, invalid, values, mode)
        return

    await _finish_employee_dialog(state)
    if payload is None:
        await message.answer("❌ " + " ".join(errors.values()))
        return

    if mode == EDIT_MODE:
        if not can_manage(session, Permission.EDIT_USER_DETAILS):
            await message.answer(ACCESS_DENIED)
            return
        target = data["employee_id"]
        if await api.update_employee(target, payload):
            logger.info("Employee updated", target_user=target)
            await message.answer("✅ Employee details updated.")
        else:
            await message.answer("❌ Failed to update employee.")
        return

    if not can_manage(session, Permission.ADD_USER):
        await message.answer(ACCESS_DENIED)
        return
    if await api.add_employee(payload):
        logger.info("Employee added", employee_code=payload.get("employeeCode"))
        await message.answer("✅ Employee added.")
    else:
        await message.answer("❌ Failed to add employee.")


# --- Employee Actions ---

@router.callback_query(F.data.startswith(CALLBACK_EDIT_RIGHTS))
async def toggle_edit_rights(
    callback: CallbackQuery,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Grant or revoke the right to edit onboarding forms."""
    if not await _guard(callback, session, Permission.UPDATE_EDIT_RIGHTS):
        return

    user_id, _, enabled = _target_id(callback.data, CALLBACK_EDIT_RIGHTS).partition(":")
    enabled = enabled == "1"

    if not await api.set_edit_rights(user_id, enabled):
        await callback.answer("❌ Failed to update edit rights.", show_alert=True)
        return

    logger.info("Edit rights updated", target_user=user_id, enabled=enabled)
    await callback.answer("✅ Edit rights granted." if enabled else "✅ Edit rights revoked.")
    try:
        await callback.message.edit_reply_markup(
            reply_markup=_actions_keyboard(session, {"userId": user_id, "editRights": enabled})
        )
    except TelegramBadRequest as e:
        logger.warning("Failed to update employee keyboard", error=str(e))


@router.callback_query(F.data.startswith(CALLBACK_REMINDER))
async def send_reminder(
    callback: CallbackQuery,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Email the employee a reminder to finish their forms."""
    if not await _guard(callback, session, Permission.SEND_REMINDER_MAIL):
        return

    user_id = _target_id(callback.data, CALLBACK_REMINDER)
    if await api.send_reminder(user_id):
        logger.info("Reminder sent", target_user=user_id)
        await callback.answer("📧 Reminder sent.")
    else:
        await callback.answer("❌ Failed to send reminder.", show_alert=True)


@router.callback_query(F.data.startswith(CALLBACK_DEACTIVATE))
async def deactivate_prompt(
    callback: CallbackQuery,
    state: FSMContext,
    session: Optional[SessionContext],
):
    """Ask why the employee is being deactivated."""
    if not await _guard(callback, session, Permission.DELETE_USER):
        return

    await state.set_state(AdminStates.deactivate_reason)
    await state.update_data(target_user=_target_id(callback.data, CALLBACK_DEACTIVATE))
    await callback.message.answer(
        "✍️ Enter the reason for deactivation:",
        reply_markup=get_cancel_keyboard(),
    )
    await callback.answer()


@router.message(AdminStates.deactivate_reason, F.text)
async def process_deactivate_reason(
    message: Message,
    state: FSMContext,
    session: Optional[SessionContext],
    api: HrApi,
):
    reason = message.text.strip()
    if len(reason) < 3:
        await message.answer("❌ The reason is too short. Please describe it:")
        return

    data = await state.get_data()
    await state.clear()

    if not can_manage(session, Permission.DELETE_USER):
        await message.answer(ACCESS_DENIED)
        return

    if await api.deactivate(data["target_user"], reason):
        logger.info("Employee deactivated", target_user=data["target_user"])
        await message.answer("✅ Employee deactivated.")
    else:
        await message.answer("❌ Failed to deactivate employee.")


@router.callback_query(F.data.startswith(CALLBACK_CONFIRM_DELETE))
async def delete_confirmed(
    callback: CallbackQuery,
    session: Optional[SessionContext],
    api: HrApi,
):
    """Permanently delete the employee after confirmation."""
    if not await _guard(callback, session, Permission.DELETE_PERMANENTLY):
        return

    user_id = _target_id(callback.data, CALLBACK_CONFIRM_DELETE)
    if await api.delete_permanently(user_id):
        logger.warning("Employee deleted permanently", target_user=user_id)
        await callback.message.edit_text("🗑 Employee deleted permanently.")
        await callback.answer()
    else:
        await callback.answer("❌ Failed to delete employee.", show_alert=True)


@router.callback_query(F.data.startswith(CALLBACK_DELETE))
async def delete_prompt(
    callback: CallbackQuery,
    session: Optional[SessionContext],
):
    """Ask for confirmation before a permanent delete."""
    if not await _guard(callback, session, Permission.DELETE_PERMANENTLY):
        return

    user_id = _target_id(callback.data, CALLBACK_DELETE)
    await callback.message.answer(
        "⚠️ Delete this employee permanently? This cannot be undone.",
        reply_markup=get_confirm_delete_keyboard(user_id),
    )
    await callback.answer()
