"""
Message formatting for the HR Onboarding Bot.
"""
from datetime import date
from html import escape
from typing import Any, Dict, List, Optional

from hrbot.onboarding.schemas import DOCUMENT_TYPES
from hrbot.onboarding.steps import AgreementStep, DocumentsStep
from hrbot.onboarding.wizard import WizardController
from hrbot.utils.date_utils import format_date, parse_date


def _text(value: Any) -> str:
    if value is None or value == "":
        return "N/A"
    return escape(str(value))


def ordinal(num: int) -> str:
    """1 -> 1st, 12 -> 12th, 23 -> 23rd."""
    if 11 <= num % 100 <= 13:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(num % 10, "th")
    return f"{num}{suffix}"


# --- Wizard ---

def format_step(wizard: WizardController) -> str:
    """Render the active wizard step with its draft values and errors."""
    step = wizard.current
    descriptor = wizard.current_descriptor

    if wizard.is_special_user:
        header = f"📝 <b>{descriptor.title}</b>"
    else:
        header = (
            f"📝 <b>Onboarding</b> — step {wizard.current_step + 1} of "
            f"{wizard.step_count}: <b>{descriptor.title}</b>"
        )
    lines = [header, ""]

    if isinstance(step, DocumentsStep):
        for doc_type, title in DOCUMENT_TYPES.items():
            ref = step.values.get(doc_type) or {}
            status = f"✅ {_text(ref.get('name'))}" if ref.get("url") else "—"
            lines.append(f"┃ {title}: {status}")
            if doc_type in step.errors:
                lines.append(f"┃   ⚠️ {escape(step.errors[doc_type])}")
    elif isinstance(step, AgreementStep):
        accepted = "☑️ accepted" if step.values.get("accepted") else "⬜ not accepted"
        lines.append(f"┃ Agreement: {accepted}")
        document = step.values.get("document") or {}
        if document.get("url"):
            lines.append(f"┃ Signed copy: ✅ {_text(document.get('name'))}")
        if "accepted" in step.errors:
            lines.append(f"┃   ⚠️ {escape(step.errors['accepted'])}")
    else:
        for field, label in step.fields():
            lines.append(f"┃ <b>{label}:</b> {_text(step.values.get(field))}")
            if field in step.errors:
                lines.append(f"┃   ⚠️ {escape(step.errors[field])}")

    if step.notice:
        lines.extend(["", f"ℹ️ {escape(step.notice)}"])
    if step.is_dirty:
        lines.extend(["", "<i>You have unsaved changes.</i>"])

    return "\n".join(lines)


# --- Profile and directory ---

def format_profile(profile: Dict[str, Any]) -> str:
    """Format the current user's profile card."""
    name = f"{profile.get('firstName') or ''} {profile.get('lastName') or ''}".strip()
    return (
        f"👤 <b>{_text(name or None)}</b>\n\n"
        f"📧 <b>Email:</b> {_text(profile.get('email'))}\n"
        f"📱 <b>Phone:</b> {_text(profile.get('phone'))}\n"
        f"🎂 <b>Date of Birth:</b> {format_date(profile.get('dateOfBirth'))}\n"
        f"⚧ <b>Gender:</b> {_text(profile.get('gender'))}\n"
        f"🩸 <b>Blood Group:</b> {_text(profile.get('bloodGroup'))}"
    )


def format_contact(employee: Dict[str, Any]) -> str:
    """Format one directory entry."""
    return (
        f"<b>{_text(employee.get('fullName'))}</b> ({_text(employee.get('employeeCode'))})\n"
        f"   📧 {_text(employee.get('email'))} • 📱 {_text(employee.get('phone'))}"
    )


def format_contacts(employees: List[Dict[str, Any]], page: int, search: str = "") -> str:
    title = "📇 <b>Contacts</b>"
    if search:
        title += f" matching “{escape(search)}”"
    if not employees:
        return f"{title}\n\nNo employees found."

    entries = "\n\n".join(format_contact(e) for e in employees)
    return f"{title} — page {page}\n\n{entries}"


def format_policies(policies: List[Dict[str, Any]]) -> str:
    if not policies:
        return "📚 <b>Policies</b>\n\nNo policies published yet."

    lines = ["📚 <b>Policies</b>", ""]
    for i, policy in enumerate(policies, 1):
        name = _text(policy.get("fileName"))
        url = policy.get("signedUrl")
        if url:
            lines.append(f'{i}. <a href="{escape(url, quote=True)}">{name}</a>')
        else:
            lines.append(f"{i}. {name}")
    return "\n".join(lines)


def format_employee(employee: Dict[str, Any]) -> str:
    """Format an employee row for the admin dashboard."""
    name = f"{employee.get('firstName') or ''} {employee.get('lastName') or ''}".strip()
    rights = "🔓 can edit" if employee.get("editRights") else "🔒 locked"
    filled = "✅ forms complete" if employee.get("allFieldsFilled") else "⏳ forms pending"
    return (
        f"👤 <b>{_text(name or None)}</b> • {_text(employee.get('designation'))}\n"
        f"   📧 {_text(employee.get('email'))}\n"
        f"   🆔 {_text(employee.get('employeeCode'))} • "
        f"{_text(employee.get('joineeType'))} • {_text(employee.get('status'))}\n"
        f"   📅 Joined {format_date(employee.get('dateOfJoining'))}\n"
        f"   {rights} • {filled}"
    )


# --- Celebrations ---

def describe_event(event: Dict[str, Any], on: date, today: date) -> str:
    """One-line description of a birthday or work anniversary."""
    is_today = on == today
    if event.get("type") == "birthday":
        return "Birthday is today 🎉" if is_today else "Upcoming Birthday 🎉"

    years = int(event.get("years") or 0)
    if years == 0:
        return "Joined today 🎊"
    if is_today:
        return f"Completed {ordinal(years)} anniversary 🎊"
    return f"Celebrating {ordinal(years)} anniversary 🎊"


def format_celebrations(groups: List[Dict[str, Any]], today: date) -> str:
    """Format the events screen, one block per date."""
    if not groups:
        return "🎉 <b>Events</b>\n\nNo upcoming birthdays or anniversaries."

    lines = ["🎉 <b>Events</b>"]
    for group in groups:
        on = parse_date(group.get("date") or "")
        if on is None:
            continue
        lines.extend(["", f"📅 <b>{format_date(on)}</b>"])
        for event in group.get("events") or []:
            lines.append(f"┃ {_text(event.get('fullName'))} — {describe_event(event, on, today)}")
    return "\n".join(lines)


def celebration_message(events: List[Dict[str, Any]]) -> Optional[str]:
    """Daily notification text for today's events, None when there are none."""
    if not events:
        return None
    titles = ", ".join(
        f"{e.get('fullName')} ({'Birthday' if e.get('type') == 'birthday' else 'Anniversary'})"
        for e in events
    )
    return f"🎉 Today's Events\n\nCelebrations: {escape(titles)}"
