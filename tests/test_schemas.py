"""Tests for the step schemas and the auth form checks."""

from datetime import date

import pytest

from hrbot.onboarding.schemas import (
    DOCUMENT_TYPES,
    PASSWORD_RULE,
    REQUIRED_DOCUMENTS,
    Agreement,
    BankDetails,
    PersonalDetails,
    validate_company_email,
    validate_new_password,
    validate_step,
)


PERSONAL = {
    "firstName": " Jane ",
    "lastName": "Doe",
    "dateOfBirth": "1990-05-15",
    "phone": "9876543210",
    "aadhar": "123412341234",
    "pan": "ABCDE1234F",
    "accountNumber": "000111222333",
}


class TestPersonalDetails:
    def test_valid(self):
        model, errors = validate_step(PersonalDetails, PERSONAL)
        assert errors == {}
        assert model.first_name == "Jane"
        assert model.date_of_birth == date(1990, 5, 15)

    def test_missing_fields_report_labels(self):
        _, errors = validate_step(PersonalDetails, {})
        assert errors["firstName"] == "First Name is required."
        assert errors["dateOfBirth"] == "Date of Birth is required."
        assert errors["accountNumber"] == "Account Number is required."

    def test_future_birth_date(self):
        _, errors = validate_step(PersonalDetails, {**PERSONAL, "dateOfBirth": "2999-01-01"})
        assert errors == {"dateOfBirth": "Date of Birth cannot be in the future."}

    def test_unparseable_birth_date(self):
        _, errors = validate_step(PersonalDetails, {**PERSONAL, "dateOfBirth": "15/05/1990"})
        assert errors == {"dateOfBirth": "Date of Birth is invalid."}

    @pytest.mark.parametrize("field,value,message", [
        ("phone", "98765", "Phone number must be exactly 10 digits."),
        ("aadhar", "1234 1234 1234", "Aadhar number must be exactly 12 digits."),
        ("pan", "ABCD12345F", "Invalid PAN format (e.g., ABCDE1234F)."),
        ("accountNumber", "12345", "Account number must be exactly 12 digits."),
    ])
    def test_format_rules(self, field, value, message):
        _, errors = validate_step(PersonalDetails, {**PERSONAL, field: value})
        assert errors == {field: message}

    def test_optional_fields_are_not_required(self):
        model, _ = validate_step(PersonalDetails, PERSONAL)
        dumped = model.model_dump(by_alias=True, mode="json", exclude_none=True)
        assert "gender" not in dumped
        assert "bloodGroup" not in dumped


class TestBankDetails:
    BANK = {
        "name": "Jane Doe",
        "bankName": "State Bank",
        "accountNumber": "1234567890",
        "ifscCode": "HDFC0ABC123",
        "branchName": "MG Road",
    }

    def test_valid(self):
        model, errors = validate_step(BankDetails, self.BANK)
        assert errors == {}
        assert model.ifsc_code == "HDFC0ABC123"

    def test_lowercase_routing_code_is_normalized(self):
        model, _ = validate_step(BankDetails, {**self.BANK, "ifscCode": "hdfc0abc123"})
        assert model.ifsc_code == "HDFC0ABC123"

    def test_blank_branch(self):
        _, errors = validate_step(BankDetails, {**self.BANK, "branchName": ""})
        assert errors == {"branchName": "Branch Name is required."}


class TestAgreement:
    def test_must_accept(self):
        _, errors = validate_step(Agreement, {"accepted": False})
        assert errors == {"accepted": "You must accept the agreement to continue."}

    def test_default_is_not_accepted(self):
        _, errors = validate_step(Agreement, {})
        assert "accepted" in errors

    def test_accepted(self):
        model, errors = validate_step(Agreement, {"accepted": True, "document": None})
        assert errors == {}
        assert model.accepted is True


class TestDocumentTypes:
    def test_required_documents_are_known(self):
        assert set(REQUIRED_DOCUMENTS) <= set(DOCUMENT_TYPES)

    def test_labels(self):
        assert DOCUMENT_TYPES["aadharCard"] == "Aadhar Card"
        assert DOCUMENT_TYPES["bachelorsOrHigherDegree"] == "Bachelors or Higher Degree"
        assert len(DOCUMENT_TYPES) == 8


# ── Auth forms ───────────────────────────────────────────────────

class TestCompanyEmail:
    def test_accepts_company_domain(self):
        assert validate_company_email("Jane.Doe@LiftoffLLC.com", "liftoffllc.com") is None

    def test_rejects_other_domain(self):
        assert validate_company_email("jane@gmail.com", "liftoffllc.com") == (
            "Email must end with @liftoffllc.com."
        )

    def test_rejects_malformed(self):
        assert validate_company_email("jane@", "liftoffllc.com") == "Invalid email format."


class TestNewPassword:
    def test_accepts_strong_matching_password(self):
        assert validate_new_password("Secret#123", "Secret#123") is None

    @pytest.mark.parametrize("password", ["short#A", "nouppercase#1", "NoSpecial123"])
    def test_rejects_weak_password(self, password):
        assert validate_new_password(password, password) == PASSWORD_RULE

    def test_rejects_mismatch(self):
        assert validate_new_password("Secret#123", "Secret#124") == "Passwords must match."
