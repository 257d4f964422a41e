"""
Inline keyboards for the HR Onboarding Bot.
"""
from typing import Any, Dict, List, Optional

from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton
from aiogram.utils.keyboard import InlineKeyboardBuilder

from hrbot.onboarding.schemas import DOCUMENT_TYPES, REQUIRED_DOCUMENTS
from hrbot.onboarding.steps import AgreementStep, DocumentsStep
from hrbot.onboarding.wizard import WizardController


# Callback data prefixes
CALLBACK_NEXT = "wiz:next"
CALLBACK_BACK = "wiz:back"
CALLBACK_SAVE = "wiz:save"
CALLBACK_JUMP = "wiz:jump:"
CALLBACK_EDIT = "wiz:edit:"
CALLBACK_UPLOAD = "wiz:upload:"
CALLBACK_DETACH = "wiz:detach:"
CALLBACK_ACCEPT = "wiz:accept"
CALLBACK_CONTACTS_PAGE = "contacts:"
CALLBACK_POLICY_DELETE = "policy_del:"
CALLBACK_POLICY_ADD = "policy_add"
CALLBACK_DASHBOARD_PAGE = "dash:"
CALLBACK_EMPLOYEE_ADD = "adm_add"
CALLBACK_EMPLOYEE_EDIT = "adm_edit:"
CALLBACK_EDIT_RIGHTS = "adm_rights:"
CALLBACK_REMINDER = "adm_remind:"
CALLBACK_DEACTIVATE = "adm_deact:"
CALLBACK_DELETE = "adm_delete:"
CALLBACK_CONFIRM_DELETE = "adm_delete_yes:"
CALLBACK_CANCEL = "cancel"
CALLBACK_NOOP = "noop"


def get_step_indicator_row(wizard: WizardController) -> List[InlineKeyboardButton]:
    """Numbered step buttons; reached steps are clickable."""
    row = []
    for index in range(wizard.step_count):
        if index == wizard.current_step:
            text = f"● {index + 1}"
        elif index < wizard.highest_reached_step or index < wizard.current_step:
            text = f"✅ {index + 1}"
        else:
            text = f"{index + 1}"

        if wizard.can_jump_to(index) and index != wizard.current_step:
            callback_data = f"{CALLBACK_JUMP}{index}"
        else:
            callback_data = CALLBACK_NOOP
        row.append(InlineKeyboardButton(text=text, callback_data=callback_data))
    return row


def _document_buttons(builder: InlineKeyboardBuilder, values: Dict[str, Any]) -> None:
    for doc_type, title in DOCUMENT_TYPES.items():
        uploaded = bool((values.get(doc_type) or {}).get("url"))
        marker = "✅" if uploaded else ("❗" if doc_type in REQUIRED_DOCUMENTS else "📎")
        buttons = [
            InlineKeyboardButton(
                text=f"{marker} {title}",
                callback_data=f"{CALLBACK_UPLOAD}{doc_type}",
            )
        ]
        if uploaded:
            buttons.append(
                InlineKeyboardButton(
                    text="🗑",
                    callback_data=f"{CALLBACK_DETACH}{doc_type}",
                )
            )
        builder.row(*buttons)


def get_wizard_keyboard(wizard: WizardController) -> InlineKeyboardMarkup:
    """Keyboard for the active onboarding step."""
    builder = InlineKeyboardBuilder()
    step = wizard.current

    if not wizard.is_special_user:
        builder.row(*get_step_indicator_row(wizard))

    if isinstance(step, DocumentsStep):
        _document_buttons(builder, step.values)
    elif isinstance(step, AgreementStep):
        accepted = bool(step.values.get("accepted"))
        builder.row(
            InlineKeyboardButton(
                text=f"{'☑️' if accepted else '⬜'} I accept the agreement",
                callback_data=CALLBACK_ACCEPT,
            )
        )
        builder.row(
            InlineKeyboardButton(
                text="📎 Upload signed agreement",
                callback_data=f"{CALLBACK_UPLOAD}agreement",
            )
        )
    else:
        buttons = [
            InlineKeyboardButton(text=f"✏️ {label}", callback_data=f"{CALLBACK_EDIT}{field}")
            for field, label in step.fields()
        ]
        # two per row
        for i in range(0, len(buttons), 2):
            builder.row(*buttons[i:i + 2])

    nav = []
    if wizard.current_step > 0 and not wizard.is_special_user:
        nav.append(InlineKeyboardButton(text="◀️ Back", callback_data=CALLBACK_BACK))
    if step.is_dirty:
        nav.append(InlineKeyboardButton(text="💾 Save", callback_data=CALLBACK_SAVE))
    next_text = "✅ Submit" if wizard.is_last_step or wizard.is_special_user else "Next ▶️"
    nav.append(InlineKeyboardButton(text=next_text, callback_data=CALLBACK_NEXT))
    builder.row(*nav)

    return builder.as_markup()


def get_pagination_keyboard(
    prefix: str,
    page: int,
    has_next: bool,
) -> Optional[InlineKeyboardMarkup]:
    """Prev/Next page buttons; None when there is only one page."""
    buttons = []
    if page > 1:
        buttons.append(
            InlineKeyboardButton(text="◀️ Prev", callback_data=f"{prefix}{page - 1}")
        )
    if has_next:
        buttons.append(
            InlineKeyboardButton(text="Next ▶️", callback_data=f"{prefix}{page + 1}")
        )
    if not buttons:
        return None
    return InlineKeyboardMarkup(inline_keyboard=[buttons])


def get_policies_keyboard(
    policies: List[Dict[str, Any]],
    can_delete: bool = True,
    can_add: bool = False,
) -> Optional[InlineKeyboardMarkup]:
    """Upload and delete buttons, filtered by what the viewer may do."""
    builder = InlineKeyboardBuilder()
    if can_add:
        builder.button(text="📤 Upload policy", callback_data=CALLBACK_POLICY_ADD)
    for policy in policies if can_delete else ():
        if policy.get("id") is None:
            continue
        builder.button(
            text=f"🗑 {policy.get('fileName', 'Policy')}",
            callback_data=f"{CALLBACK_POLICY_DELETE}{policy['id']}",
        )
    builder.adjust(1)
    markup = builder.as_markup()
    return markup if markup.inline_keyboard else None


def get_employee_actions_keyboard(
    employee: Dict[str, Any],
    can_edit: bool = False,
    can_toggle_rights: bool = False,
    can_remind: bool = False,
    can_deactivate: bool = False,
    can_delete: bool = False,
) -> Optional[InlineKeyboardMarkup]:
    """Per-employee admin actions, filtered by what the viewer may do."""
    user_id = employee.get("userId")
    if user_id is None:
        return None

    builder = InlineKeyboardBuilder()
    edit_rights = bool(employee.get("editRights"))

    if can_edit:
        builder.button(text="✏️ Edit details", callback_data=f"{CALLBACK_EMPLOYEE_EDIT}{user_id}")
    if can_toggle_rights:
        builder.button(
            text="🔒 Revoke edit rights" if edit_rights else "🔓 Grant edit rights",
            callback_data=f"{CALLBACK_EDIT_RIGHTS}{user_id}:{int(not edit_rights)}",
        )
    if can_remind and edit_rights:
        builder.button(text="📧 Send reminder", callback_data=f"{CALLBACK_REMINDER}{user_id}")
    if can_deactivate:
        builder.button(text="⛔ Deactivate", callback_data=f"{CALLBACK_DEACTIVATE}{user_id}")
    if can_delete:
        builder.button(text="🗑 Delete permanently", callback_data=f"{CALLBACK_DELETE}{user_id}")

    builder.adjust(2)
    markup = builder.as_markup()
    return markup if markup.inline_keyboard else None


def get_cancel_keyboard() -> InlineKeyboardMarkup:
    """Get cancel button for dialogs."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="❌ Cancel", callback_data=CALLBACK_CANCEL)]
        ]
    )


def get_confirm_delete_keyboard(user_id: Any) -> InlineKeyboardMarkup:
    """Get confirmation keyboard for a permanent delete."""
    builder = InlineKeyboardBuilder()
    builder.button(text="✅ Confirm", callback_data=f"{CALLBACK_CONFIRM_DELETE}{user_id}")
    builder.button(text="❌ Cancel", callback_data=CALLBACK_CANCEL)
    builder.adjust(2)
    return builder.as_markup()


def get_dashboard_keyboard() -> InlineKeyboardMarkup:
    """Dashboard header actions."""
    return InlineKeyboardMarkup(
        inline_keyboard=[
            [InlineKeyboardButton(text="➕ Add employee", callback_data=CALLBACK_EMPLOYEE_ADD)]
        ]
    )
