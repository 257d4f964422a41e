"""
Shared enumerations for roles, routes, permissions and storage keys.
"""
from enum import Enum


class Role(str, Enum):
    """User role as issued by the HR API."""
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    EMPLOYEE = "EMPLOYEE"


class JoineeType(str, Enum):
    """Whether the employee is a fresh joinee or an experienced one."""
    NEW = "NEW"
    EXISTING = "EXISTING"


class Route(str, Enum):
    """Screens a user can land on after authentication."""
    DASHBOARD = "DASHBOARD"
    PROFILE = "PROFILE"
    FORM1 = "FORM1"
    FORM2 = "FORM2"
    FORM3 = "FORM3"
    FORM4 = "FORM4"

    @property
    def is_wizard(self) -> bool:
        return self in WIZARD_ROUTES


WIZARD_ROUTES = (Route.FORM1, Route.FORM2, Route.FORM3, Route.FORM4)


class Permission(str, Enum):
    """Fine-grained editor permissions carried in the token claims."""
    VIEW_USERS = "VIEW_USERS"
    UPDATE_EDIT_RIGHTS = "UPDATE_EDIT_RIGHTS"
    DELETE_USER = "DELETE_USER"
    EDIT_USER_DETAILS = "EDIT_USER_DETAILS"
    DELETE_PERMANENTLY = "DELETE_PERMANENTLY"
    DOWNLOAD_USER_DETAILS = "DOWNLOAD_USER_DETAILS"
    ADD_USER = "ADD_USER"
    SEND_REMINDER_MAIL = "SEND_REMINDER_MAIL"
    DOWNLOAD_USER_DOCUMENTS = "DOWNLOAD_USER_DOCUMENTS"
    VIEW_USER_CONTACTS = "VIEW_USER_CONTACTS"
    ADD_POLICY = "ADD_POLICY"
    DELETE_POLICY = "DELETE_POLICY"
    MANAGE_SECRET_SANTA = "MANAGE_SECRET_SANTA"


class StoreKey(str, Enum):
    """Keys used in the per-user key-value store."""
    TOKEN = "token"
    USER_DATA = "userData"
    ACTIVE_STEP = "activeStep"
    LAST_SEEN_NOTIFICATION = "lastSeenNotification"
