"""
Add/edit employee dialog for the admin dashboard.

The chat collects one field per message. In edit mode every prompt shows the
current value and KEEP leaves it unchanged; the email is never asked for.
"""
from html import escape
from typing import Any, Dict, List, Optional, Tuple

from hrbot.onboarding.schemas import (
    EDIT_MODE,
    EMPLOYEE_STATUSES,
    JOINEE_TYPES,
    EmployeeForm,
    validate_step,
)
from hrbot.logger import get_logger

logger = get_logger(__name__)

ADD_MODE = "add"
KEEP = "-"

EMPLOYEE_FIELDS: List[str] = EmployeeForm.field_order()

CHOICES: Dict[str, Tuple[str, ...]] = {
    "joineeType": JOINEE_TYPES,
    "status": EMPLOYEE_STATUSES,
}


def employee_values(employee: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Initial draft: blank for a new employee, prefilled from a dashboard row."""
    employee = employee or {}
    values = {field: str(employee.get(field) or "") for field in EMPLOYEE_FIELDS}
    # the API may send a full timestamp
    values["dateOfJoining"] = values["dateOfJoining"][:10]
    if not values["joineeType"]:
        values["joineeType"] = "NEW"
    if values["joineeType"].upper() == "EXISTING":
        values["status"] = "Experienced"
    return values


def dialog_fields(mode: str, values: Dict[str, str]) -> List[str]:
    """Fields asked for, in order, given the answers so far."""
    fields = []
    for field in EMPLOYEE_FIELDS:
        if field == "email" and mode == EDIT_MODE:
            continue
        if field == "status" and values.get("joineeType", "").upper() == "EXISTING":
            continue
        fields.append(field)
    return fields


def next_field(mode: str, values: Dict[str, str], after: Optional[str] = None) -> Optional[str]:
    """The field to ask for after ``after`` (the first one when None)."""
    fields = dialog_fields(mode, values)
    if after is None:
        return fields[0]
    if after not in fields:
        return None
    index = fields.index(after) + 1
    return fields[index] if index < len(fields) else None


def apply_answer(values: Dict[str, str], field: str, text: str) -> Dict[str, str]:
    """Store one reply. KEEP leaves an existing value untouched."""
    text = text.strip()
    updated = dict(values)
    if text == KEEP and values.get(field):
        return updated

    if field in CHOICES:
        for choice in CHOICES[field]:
            if text.lower() == choice.lower():
                text = choice
                break
    updated[field] = text

    if field == "joineeType" and text.upper() == "EXISTING":
        updated["status"] = "Experienced"
    return updated


def prompt_for(field: str, values: Dict[str, str], mode: str) -> str:
    """Question text for one field."""
    label = EmployeeForm.label(field)
    prompt = f"✏️ Enter <b>{label}</b>"
    if field in CHOICES:
        prompt += f" ({' / '.join(CHOICES[field])})"
    elif field == "dateOfJoining":
        prompt += " (YYYY-MM-DD)"
    prompt += ":"

    current = values.get(field)
    if mode == EDIT_MODE and current:
        prompt += f"\nCurrent: <code>{escape(current)}</code>. Send {KEEP} to keep it."
    return prompt


def validate_employee(
    values: Dict[str, str],
    mode: str,
) -> Tuple[Optional[Dict[str, Any]], Dict[str, str]]:
    """Return (payload, {}) or (None, {field: message})."""
    model, errors = validate_step(EmployeeForm, values, context={"mode": mode})
    if model is None:
        logger.debug("Employee form rejected", mode=mode, fields=sorted(errors))
        return None, errors
    exclude = {"email"} if mode == EDIT_MODE else None
    return model.model_dump(by_alias=True, mode="json", exclude=exclude), {}


def first_invalid_field(mode: str, values: Dict[str, str], errors: Dict[str, str]) -> Optional[str]:
    """The earliest asked-for field that failed validation."""
    for field in dialog_fields(mode, values):
        if field in errors:
            return field
    return None
