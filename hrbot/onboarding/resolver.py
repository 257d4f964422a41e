"""
Resume-point resolution.

Decides where a user lands right after authentication and seeds the stored
wizard index accordingly. Rules are evaluated top to bottom; the first match
wins.
"""
from dataclasses import dataclass
from typing import Optional

from hrbot.constants import JoineeType, Role, Route, WIZARD_ROUTES
from hrbot.services.session import UserClaims
from hrbot.services.store import KeyValueStore, write_active_step
from hrbot.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ResumeDecision:
    route: Route
    step_index: int = 0


PROFILE = ResumeDecision(Route.PROFILE, 0)


def _first_unfilled(user: UserClaims) -> Optional[ResumeDecision]:
    for index, filled in enumerate(user.forms_filled):
        if not filled:
            return ResumeDecision(WIZARD_ROUTES[index], index)
    return None


def resolve(user: Optional[UserClaims]) -> ResumeDecision:
    """Compute the landing route and wizard index for a user."""
    if user is None or user.role is None:
        return PROFILE

    if user.role == Role.ADMIN:
        return ResumeDecision(Route.DASHBOARD, 0)

    if user.role == Role.EMPLOYEE and user.joinee_type == JoineeType.NEW:
        if not user.edit_rights or user.all_forms_filled:
            return PROFILE
        decision = _first_unfilled(user)
        if decision is None:
            # every form flag set while allFormsFilled is false
            logger.error(
                "Inconsistent form flags",
                user_id=user.user_id,
                forms_filled=user.forms_filled,
            )
            return PROFILE
        return decision

    if user.role == Role.EMPLOYEE and user.joinee_type == JoineeType.EXISTING:
        if not user.edit_rights or user.all_forms_filled or user.form1_filled:
            return PROFILE
        return ResumeDecision(Route.FORM1, 0)

    return PROFILE


async def apply_resume_point(
    store: KeyValueStore,
    user: Optional[UserClaims],
) -> ResumeDecision:
    """Resolve, persist the step index, and hand the decision to the caller."""
    decision = resolve(user)
    await write_active_step(store, decision.step_index)
    logger.info(
        "Resume point resolved",
        user_id=user.user_id if user else None,
        route=decision.route.value,
        step=decision.step_index,
    )
    return decision
