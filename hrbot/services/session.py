"""
Session context and permission checks.

The token claims are decoded once per authentication change into an immutable
SessionContext that handlers receive explicitly, instead of re-reading the
store wherever a role or permission is needed.
"""
import json
from dataclasses import dataclass
from typing import Any, List, Optional, Union

from jose import jwt
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)

from hrbot.constants import JoineeType, Permission, Role, StoreKey
from hrbot.services.store import KeyValueStore, write_active_step
from hrbot.logger import get_logger

logger = get_logger(__name__)


class UserClaims(BaseModel):
    """User attributes carried in the access token."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    user_id: Optional[Union[int, str]] = Field(default=None, alias="userId")
    email: Optional[str] = None
    role: Optional[Role] = None
    status: Optional[str] = None
    joinee_type: Optional[JoineeType] = Field(default=None, alias="joineeType")
    edit_rights: bool = Field(default=False, alias="editRights")
    all_forms_filled: bool = Field(default=False, alias="allFormsFilled")
    form1_filled: bool = Field(default=False, alias="form1Filled")
    form2_filled: bool = Field(default=False, alias="form2Filled")
    form3_filled: bool = Field(default=False, alias="form3Filled")
    form4_filled: bool = Field(default=False, alias="form4Filled")
    permissions: List[str] = Field(default_factory=list)

    @field_validator("role", "joinee_type", mode="before")
    @classmethod
    def _unknown_enum_is_none(cls, value: Any, info: ValidationInfo) -> Any:
        enum = Role if info.field_name == "role" else JoineeType
        if value is None or isinstance(value, enum):
            return value
        try:
            return enum(str(value).upper())
        except ValueError:
            return None

    @field_validator("permissions", mode="before")
    @classmethod
    def _permissions_list(cls, value: Any) -> Any:
        return value or []

    @property
    def forms_filled(self) -> List[bool]:
        """Per-step completion flags, in wizard order."""
        return [self.form1_filled, self.form2_filled, self.form3_filled, self.form4_filled]


@dataclass(frozen=True)
class SessionContext:
    """Snapshot of the authenticated user."""
    token: str
    user: UserClaims

    @property
    def user_id(self) -> Optional[Union[int, str]]:
        return self.user.user_id


def decode_claims(token: str) -> UserClaims:
    """Decode token claims without verifying the signature."""
    claims = jwt.get_unverified_claims(token)
    return UserClaims.model_validate(claims)


# --- Capability checks ---

def is_special_user(user: UserClaims) -> bool:
    """Privileged roles and experienced joinees skip the multi-step flow."""
    return user.role in (Role.ADMIN, Role.EDITOR) or user.joinee_type == JoineeType.EXISTING


def is_admin(ctx: Optional[SessionContext]) -> bool:
    return ctx is not None and ctx.user.role == Role.ADMIN


def is_editor(ctx: Optional[SessionContext]) -> bool:
    return ctx is not None and ctx.user.role == Role.EDITOR


def is_employee(ctx: Optional[SessionContext]) -> bool:
    return ctx is not None and ctx.user.role == Role.EMPLOYEE


def has_permission(ctx: Optional[SessionContext], permission: Permission) -> bool:
    """Check a single permission from the claims."""
    if ctx is None:
        return False
    return permission.value in ctx.user.permissions


def can_view_dashboard(ctx: Optional[SessionContext]) -> bool:
    """Admins, and editors allowed to view users, see the dashboard."""
    return is_admin(ctx) or (is_editor(ctx) and has_permission(ctx, Permission.VIEW_USERS))


def can_manage(ctx: Optional[SessionContext], permission: Permission) -> bool:
    """Admins may do everything; editors need the explicit permission."""
    return is_admin(ctx) or has_permission(ctx, permission)


# --- Session lifecycle ---

class SessionService:
    """Creates, restores and ends the stored session of one user."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def start(self, token: str) -> SessionContext:
        """Persist a freshly issued token and its decoded claims."""
        user = decode_claims(token)
        await self.store.set(StoreKey.TOKEN, token)
        await self.store.set(StoreKey.USER_DATA, user.model_dump_json(by_alias=True))
        await write_active_step(self.store, 0)

        logger.info("Session started", user_id=user.user_id, role=user.role)
        return SessionContext(token=token, user=user)

    async def load(self) -> Optional[SessionContext]:
        """Restore the stored session, or None if absent or unreadable."""
        token = await self.store.get(StoreKey.TOKEN)
        raw = await self.store.get(StoreKey.USER_DATA)
        if not token or not raw:
            return None

        try:
            user = UserClaims.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as e:
            logger.warning("Failed to parse userData", error=str(e))
            return None

        return SessionContext(token=token, user=user)

    async def end(self) -> None:
        """Forget everything stored for this user."""
        await self.store.clear()
        logger.info("Session ended")
