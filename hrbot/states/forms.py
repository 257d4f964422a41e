"""
FSM states for the chat flows.
"""
from aiogram.fsm.state import State, StatesGroup


class AuthStates(StatesGroup):
    """Login, signup and password recovery dialogs."""

    login_email = State()
    login_password = State()

    signup_email = State()
    signup_password = State()
    signup_confirm = State()

    forgot_email = State()

    reset_token = State()
    reset_password = State()
    reset_confirm = State()


class WizardStates(StatesGroup):
    """Input expected while the onboarding wizard is open."""

    field_value = State()
    document_upload = State()


class AdminStates(StatesGroup):
    """Dashboard dialogs."""

    deactivate_reason = State()
    employee_field = State()
    policy_upload = State()
