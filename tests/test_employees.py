"""Tests for the dashboard employee form and its chat dialog."""

import pytest

from hrbot.onboarding.schemas import EDIT_MODE
from hrbot.services.employees import (
    ADD_MODE,
    EMPLOYEE_FIELDS,
    KEEP,
    apply_answer,
    dialog_fields,
    employee_values,
    first_invalid_field,
    next_field,
    prompt_for,
    validate_employee,
)

EMPLOYEE = {
    "employeeCode": "U001",
    "firstName": "Jane",
    "lastName": "Doe",
    "email": "Jane.Doe@liftoffllc.com",
    "dateOfJoining": "2023-04-01",
    "designation": "Engineer",
    "joineeType": "NEW",
    "status": "Fresher",
}


# ── Validation ───────────────────────────────────────────────────

class TestValidateEmployee:
    def test_valid_add_payload(self):
        payload, errors = validate_employee(EMPLOYEE, ADD_MODE)

        assert errors == {}
        assert payload == {**EMPLOYEE, "email": "jane.doe@liftoffllc.com"}

    def test_missing_fields_report_labels(self):
        _, errors = validate_employee({}, ADD_MODE)

        assert errors["employeeCode"] == "Employee Code is required."
        assert errors["dateOfJoining"] == "Date of Joining is required."
        assert errors["designation"] == "Designation is required."

    @pytest.mark.parametrize("field,value,message", [
        ("employeeCode", "E001", "Code must be 'U' followed by 3 digits (e.g., U001)."),
        ("firstName", "J", "First Name is too short."),
        ("lastName", "D", "Last Name is too short."),
        ("email", "jane@gmail.com", "Email must end with @liftoffllc.com."),
        ("dateOfJoining", "2999-01-01", "Date of Joining cannot be in the future."),
        ("dateOfJoining", "01/04/2023", "Invalid date format. Please use YYYY-MM-DD."),
        ("status", "Intern", "Invalid status."),
        ("joineeType", "OLD", "Invalid joinee type."),
    ])
    def test_rules(self, field, value, message):
        _, errors = validate_employee({**EMPLOYEE, field: value}, ADD_MODE)
        assert errors == {field: message}

    def test_existing_joinee_is_experienced(self):
        payload, _ = validate_employee({**EMPLOYEE, "joineeType": "EXISTING"}, ADD_MODE)
        assert payload["status"] == "Experienced"

    def test_edit_ignores_email(self):
        payload, errors = validate_employee({**EMPLOYEE, "email": "legacy@old.com"}, EDIT_MODE)

        assert errors == {}
        assert "email" not in payload
        assert payload["employeeCode"] == "U001"


# ── Dialog ───────────────────────────────────────────────────────

class TestDialog:
    """Field order, KEEP handling and prefill."""

    def test_add_asks_every_field(self):
        assert dialog_fields(ADD_MODE, employee_values()) == EMPLOYEE_FIELDS
        assert EMPLOYEE_FIELDS[0] == "employeeCode"

    def test_edit_skips_email(self):
        assert "email" not in dialog_fields(EDIT_MODE, employee_values(EMPLOYEE))

    def test_existing_joinee_skips_status(self):
        values = {**employee_values(), "joineeType": "EXISTING"}
        assert "status" not in dialog_fields(ADD_MODE, values)

    def test_next_field_walks_in_order(self):
        values = employee_values()
        field = next_field(ADD_MODE, values)
        seen = []
        while field is not None:
            seen.append(field)
            field = next_field(ADD_MODE, values, after=field)
        assert seen == EMPLOYEE_FIELDS

    def test_keep_leaves_value(self):
        values = employee_values(EMPLOYEE)
        assert apply_answer(values, "designation", KEEP)["designation"] == "Engineer"

    def test_keep_without_value_is_stored(self):
        values = employee_values()
        assert apply_answer(values, "designation", KEEP)["designation"] == KEEP

    def test_choices_are_normalized(self):
        values = apply_answer(employee_values(), "joineeType", " existing ")

        assert values["joineeType"] == "EXISTING"
        assert values["status"] == "Experienced"
        assert apply_answer(values, "status", "fresher")["status"] == "Fresher"

    def test_prefill_from_dashboard_row(self):
        row = {**EMPLOYEE, "dateOfJoining": "2023-04-01T00:00:00.000Z", "status": None,
               "joineeType": "EXISTING", "userId": 9}

        values = employee_values(row)

        assert values["dateOfJoining"] == "2023-04-01"
        assert values["status"] == "Experienced"
        assert "userId" not in values

    def test_blank_form_defaults_to_new_joinee(self):
        assert employee_values()["joineeType"] == "NEW"

    def test_edit_prompt_shows_current_value(self):
        values = {**employee_values(EMPLOYEE), "designation": "R&D"}

        prompt = prompt_for("designation", values, EDIT_MODE)

        assert "<code>R&amp;D</code>" in prompt
        assert f"Send {KEEP} to keep it." in prompt
        assert "Current" not in prompt_for("designation", values, ADD_MODE)

    def test_first_invalid_field_follows_dialog_order(self):
        values = employee_values(EMPLOYEE)
        errors = {"status": "Invalid status.", "lastName": "Last Name is too short."}
        assert first_invalid_field(ADD_MODE, values, errors) == "lastName"
        assert first_invalid_field(EDIT_MODE, values, {"email": "x"}) is None
