"""
Declarative validation rules for each onboarding step and the auth forms.

Field names follow the API payload (camelCase aliases) so a validated model
can be dumped straight into the PATCH body.
"""
import re
from datetime import date
from typing import Annotated, Any, Dict, Optional, Type

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)

from hrbot.config import settings
from hrbot.utils.date_utils import age_on, today

PHONE_REGEX = re.compile(r"^\d{10}$")
AADHAR_REGEX = re.compile(r"^\d{12}$")
PAN_REGEX = re.compile(r"^[A-Z]{5}[0-9]{4}[A-Z]$")
ACCOUNT_12_REGEX = re.compile(r"^\d{12}$")
DIGITS_REGEX = re.compile(r"^[0-9]+$")
IFSC_REGEX = re.compile(r"^[A-Z]{4}0[A-Z0-9]{6}$")
PASSWORD_REGEX = re.compile(r"^(?=.*[A-Z])(?=.*[!@#$%^&*()_\-+=\[\]{};':\"\\|,.<>/?]).{8,}$")
EMAIL_REGEX = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
EMPLOYEE_CODE_REGEX = re.compile(r"^U\d{3}$")
ISO_DATE_REGEX = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MINIMUM_AGE = 18

PASSWORD_RULE = (
    "Password must be at least 8 characters, contain one uppercase "
    "letter and one special character."
)


class StepSchema(BaseModel):
    """Common config: populate by API alias, strip whitespace."""

    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        extra="ignore",
    )

    @classmethod
    def label(cls, field: str) -> str:
        """Human label for a field name or alias."""
        for name, info in cls.model_fields.items():
            if field in (name, info.alias):
                return info.title or name
        return field

    @classmethod
    def field_order(cls) -> list:
        """API field names in declaration order."""
        return [info.alias or name for name, info in cls.model_fields.items()]


def _required(value: Any) -> Any:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValueError("required")
    return value


RequiredStr = Annotated[str, BeforeValidator(_required)]
RequiredDate = Annotated[date, BeforeValidator(_required)]


# --- Personal details ---

class PersonalDetails(StepSchema):
    first_name: RequiredStr = Field(alias="firstName", title="First Name")
    last_name: RequiredStr = Field(alias="lastName", title="Last Name")
    date_of_birth: RequiredDate = Field(alias="dateOfBirth", title="Date of Birth")
    phone: RequiredStr = Field(title="Phone")
    aadhar: RequiredStr = Field(title="Aadhar Number")
    pan: RequiredStr = Field(title="PAN")
    account_number: RequiredStr = Field(alias="accountNumber", title="Account Number")
    gender: Optional[str] = Field(default=None, title="Gender")
    blood_group: Optional[str] = Field(default=None, alias="bloodGroup", title="Blood Group")
    current_address: Optional[str] = Field(
        default=None, alias="currentAddress", title="Current Address"
    )

    @field_validator("date_of_birth")
    @classmethod
    def _adult(cls, value: date) -> date:
        if value > today():
            raise ValueError("Date of Birth cannot be in the future.")
        if age_on(value, today()) < MINIMUM_AGE:
            raise ValueError(f"You must be at least {MINIMUM_AGE} years old.")
        return value

    @field_validator("phone")
    @classmethod
    def _phone(cls, value: str) -> str:
        if not PHONE_REGEX.match(value):
            raise ValueError("Phone number must be exactly 10 digits.")
        return value

    @field_validator("aadhar")
    @classmethod
    def _aadhar(cls, value: str) -> str:
        if not AADHAR_REGEX.match(value):
            raise ValueError("Aadhar number must be exactly 12 digits.")
        return value

    @field_validator("pan")
    @classmethod
    def _pan(cls, value: str) -> str:
        value = value.upper()
        if not PAN_REGEX.match(value):
            raise ValueError("Invalid PAN format (e.g., ABCDE1234F).")
        return value

    @field_validator("account_number")
    @classmethod
    def _account(cls, value: str) -> str:
        if not ACCOUNT_12_REGEX.match(value):
            raise ValueError("Account number must be exactly 12 digits.")
        return value


# --- Documents ---

class DocumentRef(BaseModel):
    """An uploaded file: display name plus its finalized storage URL."""
    name: str = ""
    url: Optional[str] = None


class Documents(StepSchema):
    aadhar_card: DocumentRef = Field(alias="aadharCard", title="Aadhar Card")
    pan_card: DocumentRef = Field(alias="panCard", title="Pan Card")
    tenth_marks_card: Optional[DocumentRef] = Field(
        default=None, alias="tenthMarksCard", title="10th Marks Card"
    )
    twelth_marks_card: Optional[DocumentRef] = Field(
        default=None, alias="twelthMarksCard", title="12th Marks Card"
    )
    degree: Optional[DocumentRef] = Field(
        default=None, alias="bachelorsOrHigherDegree", title="Bachelors or Higher Degree"
    )
    payslips: Optional[DocumentRef] = Field(
        default=None, alias="last3MonthsPayslips", title="Last 3 Months Pay Slips"
    )
    offer_letters: Optional[DocumentRef] = Field(
        default=None, alias="last3OrgRelievingOfferLetter",
        title="Last 3 Org. Offer & Hike Letter",
    )
    settlement: Optional[DocumentRef] = Field(
        default=None, alias="fullAndFinalSettlement", title="Full and Final Settlement"
    )

    @field_validator("aadhar_card", "pan_card")
    @classmethod
    def _uploaded(cls, value: DocumentRef) -> DocumentRef:
        if not value.url:
            raise ValueError("This document is required.")
        return value


DOCUMENT_TYPES: Dict[str, str] = {
    info.alias: info.title for info in Documents.model_fields.values()
}
REQUIRED_DOCUMENTS = ("aadharCard", "panCard")
AGREEMENT_DOCUMENT = "agreement"


# --- Bank details ---

class BankDetails(StepSchema):
    name: RequiredStr = Field(title="Name (As per Bank Records)")
    bank_name: RequiredStr = Field(alias="bankName", title="Bank Name")
    account_number: RequiredStr = Field(alias="accountNumber", title="Account Number")
    ifsc_code: RequiredStr = Field(alias="ifscCode", title="IFSC Code")
    branch_name: RequiredStr = Field(alias="branchName", title="Branch Name")

    @field_validator("account_number")
    @classmethod
    def _digits(cls, value: str) -> str:
        if not DIGITS_REGEX.match(value):
            raise ValueError("Account Number must only contain digits.")
        return value

    @field_validator("ifsc_code")
    @classmethod
    def _ifsc(cls, value: str) -> str:
        value = value.upper()
        if not IFSC_REGEX.match(value):
            raise ValueError("Invalid IFSC code format (e.g., ABCD0123456).")
        return value


# --- Agreement ---

class Agreement(StepSchema):
    accepted: bool = Field(default=False, title="Agreement", validate_default=True)
    document: Optional[DocumentRef] = Field(default=None, title="Signed Agreement")

    @field_validator("accepted")
    @classmethod
    def _must_accept(cls, value: bool) -> bool:
        if not value:
            raise ValueError("You must accept the agreement to continue.")
        return value


# --- Auth forms ---

def _company_email(value: str, domain: str) -> str:
    value = value.strip().lower()
    if not EMAIL_REGEX.match(value):
        raise ValueError("Invalid email format.")
    if not value.endswith(f"@{domain.lower()}"):
        raise ValueError(f"Email must end with @{domain}.")
    return value


def validate_company_email(value: str, domain: str) -> Optional[str]:
    """Return an error message, or None when the email is acceptable."""
    try:
        _company_email(value, domain)
    except ValueError as e:
        return str(e)
    return None


def validate_new_password(password: str, confirm: str) -> Optional[str]:
    """Return an error message, or None when password and confirmation are fine."""
    if not PASSWORD_REGEX.match(password or ""):
        return PASSWORD_RULE
    if password != confirm:
        return "Passwords must match."
    return None


# --- Dashboard employee form ---

JOINEE_TYPES = ("NEW", "EXISTING")
EMPLOYEE_STATUSES = ("Fresher", "Experienced")
EDIT_MODE = "edit"


class EmployeeForm(StepSchema):
    """Employee record as HR adds or edits it from the dashboard.

    Validate with ``context={"mode": "edit"}`` to skip the email rules; the
    email of an existing employee cannot be changed.
    """

    employee_code: RequiredStr = Field(alias="employeeCode", title="Employee Code")
    first_name: RequiredStr = Field(alias="firstName", title="First Name")
    last_name: RequiredStr = Field(alias="lastName", title="Last Name")
    email: RequiredStr = Field(title="Email")
    date_of_joining: RequiredDate = Field(alias="dateOfJoining", title="Date of Joining")
    designation: RequiredStr = Field(title="Designation")
    joinee_type: RequiredStr = Field(alias="joineeType", title="Joinee Type")
    status: RequiredStr = Field(title="Status")

    @model_validator(mode="before")
    @classmethod
    def _existing_is_experienced(cls, data: Any) -> Any:
        if isinstance(data, dict):
            joinee_type = data.get("joineeType", data.get("joinee_type"))
            if str(joinee_type or "").strip().upper() == "EXISTING":
                data = {**data, "status": "Experienced"}
        return data

    @field_validator("employee_code")
    @classmethod
    def _code(cls, value: str) -> str:
        if not EMPLOYEE_CODE_REGEX.match(value):
            raise ValueError("Code must be 'U' followed by 3 digits (e.g., U001).")
        return value

    @field_validator("first_name", "last_name")
    @classmethod
    def _name_length(cls, value: str, info: ValidationInfo) -> str:
        if len(value) < 2:
            raise ValueError(f"{cls.label(info.field_name)} is too short.")
        return value

    @field_validator("email")
    @classmethod
    def _email(cls, value: str, info: ValidationInfo) -> str:
        if (info.context or {}).get("mode") == EDIT_MODE:
            return value
        return _company_email(value, settings.EMAIL_DOMAIN)

    @field_validator("date_of_joining", mode="before")
    @classmethod
    def _iso_date(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip() and not ISO_DATE_REGEX.match(value.strip()):
            raise ValueError("Invalid date format. Please use YYYY-MM-DD.")
        return value

    @field_validator("date_of_joining")
    @classmethod
    def _joined(cls, value: date) -> date:
        if value > today():
            raise ValueError("Date of Joining cannot be in the future.")
        return value

    @field_validator("joinee_type")
    @classmethod
    def _joinee_type(cls, value: str) -> str:
        value = value.upper()
        if value not in JOINEE_TYPES:
            raise ValueError("Invalid joinee type.")
        return value

    @field_validator("status")
    @classmethod
    def _status(cls, value: str) -> str:
        value = value.capitalize()
        if value not in EMPLOYEE_STATUSES:
            raise ValueError("Invalid status.")
        return value


# --- Error collection ---

def collect_errors(schema: Type[StepSchema], exc: ValidationError) -> Dict[str, str]:
    """Flatten a ValidationError into {field: message}, first error per field."""
    errors: Dict[str, str] = {}
    for error in exc.errors(include_url=False):
        loc = error.get("loc") or ()
        field = str(loc[0]) if loc else "__all__"
        if field in errors:
            continue

        label = schema.label(field)
        message = error.get("msg", "Invalid value")
        if error.get("type") == "missing" or message.endswith(", required"):
            message = f"{label} is required."
        elif message.startswith("Value error, "):
            message = message[len("Value error, "):]
        elif error.get("type", "").startswith(("date_", "bool_")):
            message = f"{label} is invalid."
        errors[field] = message
    return errors


def validate_step(
    schema: Type[StepSchema],
    values: Dict[str, Any],
    context: Optional[Dict[str, Any]] = None,
):
    """Validate a draft. Returns (model, {}) or (None, errors)."""
    try:
        return schema.model_validate(values, context=context), {}
    except ValidationError as exc:
        return None, collect_errors(schema, exc)
