"""
Onboarding wizard state machine.

Owns the current step index, the furthest step reached this session and the
single in-flight action flag. Every committed step change is mirrored to the
``activeStep`` key so the wizard resumes where the user left off after a
restart.

Transitions:
    mount()            restore from the store, self-heal, force 0 for special users
    go_next()          submit the active step, then advance / loop / leave
    go_back()          one step back (not for special users)
    jump_to_step(k)    any step up to the furthest reached (not for special users)
    save()             draft-save the active step when it is dirty
"""
import asyncio
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional, Tuple

from hrbot.constants import Route
from hrbot.onboarding.registry import STEP_REGISTRY, StepDescriptor, build_step
from hrbot.onboarding.steps import StepContext, StepController
from hrbot.services.session import UserClaims, is_special_user
from hrbot.services.store import KeyValueStore, read_active_step, write_active_step
from hrbot.logger import get_logger

logger = get_logger(__name__)

NavigateCallback = Callable[[Route], Awaitable[None]]


class Direction(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


class ActionInFlight(str, Enum):
    NONE = "none"
    SUBMIT = "submit"
    SAVE = "save"


class NextOutcome(str, Enum):
    """What a go_next() call ended up doing."""
    REJECTED = "rejected"
    STAYED = "stayed"
    ADVANCED = "advanced"
    COMPLETED = "completed"
    PROFILE = "profile"


class WizardController:
    """Drives the registered steps for one user."""

    def __init__(
        self,
        store: KeyValueStore,
        user: UserClaims,
        context: Optional[StepContext] = None,
        registry: Tuple[StepDescriptor, ...] = STEP_REGISTRY,
        on_navigate: Optional[NavigateCallback] = None,
    ):
        self.store = store
        self.user = user
        self.context = context
        self.registry = registry
        if context is not None:
            context.step_count = len(registry)
        self.on_navigate = on_navigate

        self.current_step = 0
        self.highest_reached_step = 0
        self.direction = Direction.FORWARD
        self.is_special_user = is_special_user(user)
        self.action_in_flight = ActionInFlight.NONE
        self.mounted = False
        self.current: StepController = self._build(0)

    @property
    def step_count(self) -> int:
        return len(self.registry)

    @property
    def is_busy(self) -> bool:
        return self.action_in_flight != ActionInFlight.NONE or self.current.is_submitting

    @property
    def is_last_step(self) -> bool:
        return self.current_step == self.step_count - 1

    @property
    def current_descriptor(self) -> StepDescriptor:
        return self.registry[self.current_step]

    def can_jump_to(self, index: int) -> bool:
        return not self.is_special_user and 0 <= index <= self.highest_reached_step

    # --- Internals ---

    def _build(self, index: int) -> StepController:
        return build_step(index, self.context, self.registry)

    def _commit(self, index: int) -> None:
        """Swap the active step; called synchronously on every step change."""
        self.current_step = index
        self.highest_reached_step = max(self.highest_reached_step, index)
        self.current = self._build(index)

    async def _persist(self) -> None:
        await write_active_step(self.store, self.current_step)

    async def _load_current(self) -> None:
        try:
            await self.current.load()
        except Exception:
            logger.error(
                "Failed to load step",
                step=self.current_descriptor.name,
                user_id=self.user.user_id,
                exc_info=True,
            )

    async def _self_heal(self) -> bool:
        """Reset an out-of-range index to 0 and persist it."""
        if 0 <= self.current_step <= self.step_count - 1:
            return False
        logger.warning(
            "Resetting out-of-range step",
            step=self.current_step,
            step_count=self.step_count,
            user_id=self.user.user_id,
        )
        self.current_step = 0
        self._commit(0)
        await self._persist()
        return True

    # --- Transitions ---

    async def mount(self, load: bool = True) -> None:
        """Restore the wizard position from the store."""
        stored = await read_active_step(self.store)

        if self.is_special_user:
            self.current_step = self.highest_reached_step = 0
            self._commit(0)
            await self._persist()
        elif stored is not None:
            self.current_step = stored
            if not await self._self_heal():
                self.highest_reached_step = stored
                self._commit(stored)
        else:
            self._commit(0)

        self.mounted = True
        logger.info(
            "Wizard mounted",
            user_id=self.user.user_id,
            step=self.current_step,
            special=self.is_special_user,
        )
        if load:
            await self._load_current()

    async def go_next(self) -> NextOutcome:
        """Submit the active step and move on when it succeeds."""
        if self.is_busy:
            logger.debug("Next rejected, action in flight", user_id=self.user.user_id)
            return NextOutcome.REJECTED

        self.action_in_flight = ActionInFlight.SUBMIT
        try:
            await self._self_heal()
            submitted = await self.current.submit()
            if not submitted:
                return NextOutcome.STAYED

            if self.is_special_user:
                # the step may have moved activeStep forward; special users stay on 0
                await self._persist()
                if self.on_navigate:
                    await self.on_navigate(Route.PROFILE)
                return NextOutcome.PROFILE

            self.direction = Direction.FORWARD
            if self.is_last_step:
                self._commit(0)
                await self._persist()
                logger.info("Onboarding completed", user_id=self.user.user_id)
                await self._load_current()
                return NextOutcome.COMPLETED

            self._commit(self.current_step + 1)
            await self._persist()
            await self._load_current()
            return NextOutcome.ADVANCED
        except Exception:
            logger.error(
                "Step submit failed",
                step=self.current_descriptor.name,
                user_id=self.user.user_id,
                exc_info=True,
            )
            return NextOutcome.REJECTED
        finally:
            self.action_in_flight = ActionInFlight.NONE

    async def go_back(self) -> bool:
        """Move one step back. Returns True when the step changed."""
        if self.is_special_user or self.current_step == 0 or self.is_busy:
            return False

        self.direction = Direction.BACKWARD
        self._commit(self.current_step - 1)
        await self._persist()
        await self._load_current()
        return True

    async def jump_to_step(self, index: int) -> bool:
        """Jump to any step already reached. Returns True when the step changed."""
        if not self.can_jump_to(index) or index == self.current_step or self.is_busy:
            return False

        self.direction = Direction.FORWARD if index > self.current_step else Direction.BACKWARD
        self._commit(index)
        await self._persist()
        await self._load_current()
        return True

    async def save(self) -> bool:
        """Draft-save the active step. Returns the step's result, False if skipped."""
        if self.action_in_flight != ActionInFlight.NONE or not self.current.is_dirty:
            return False

        self.action_in_flight = ActionInFlight.SAVE
        try:
            return await self.current.save()
        except Exception:
            logger.error(
                "Step save failed",
                step=self.current_descriptor.name,
                user_id=self.user.user_id,
                exc_info=True,
            )
            return False
        finally:
            self.action_in_flight = ActionInFlight.NONE


class WizardPool:
    """In-memory wizards, one per chat user.

    Updates of one user may be handled concurrently, so creation goes through
    a per-owner lock and every update of that user sees the same controller.
    """

    def __init__(self):
        self._wizards: Dict[int, WizardController] = {}
        self._locks: Dict[int, asyncio.Lock] = {}

    async def get_or_mount(
        self,
        owner_id: int,
        build: Callable[[], WizardController],
    ) -> WizardController:
        """Return the owner's wizard, building and mounting it at most once."""
        async with self._locks.setdefault(owner_id, asyncio.Lock()):
            wizard = self._wizards.get(owner_id)
            if wizard is None:
                wizard = build()
                await wizard.mount()
                self._wizards[owner_id] = wizard
            return wizard

    def discard(self, owner_id: int) -> None:
        self._wizards.pop(owner_id, None)

    def __len__(self) -> int:
        return len(self._wizards)
