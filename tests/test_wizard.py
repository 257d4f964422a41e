"""Wizard state machine tests, driven through scripted steps."""

import asyncio
import random
from typing import List, Optional

import pytest

from hrbot.constants import Route
from hrbot.onboarding.registry import StepDescriptor
from hrbot.onboarding.wizard import (
    ActionInFlight,
    Direction,
    NextOutcome,
    WizardController,
    WizardPool,
)
from tests.conftest import make_user


class Script:
    """Shared behaviour and call log for every scripted step."""

    def __init__(self):
        self.result = True
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None
        self.dirty = False
        self.submitting = False
        self.submits: List[int] = []
        self.saves: List[int] = []
        self.loads: List[int] = []


class ScriptedStep:
    def __init__(self, script: Script, index: int):
        self.script = script
        self.index = index

    @property
    def is_dirty(self):
        return self.script.dirty

    @property
    def is_submitting(self):
        return self.script.submitting

    async def load(self):
        self.script.loads.append(self.index)

    async def submit(self):
        self.script.submits.append(self.index)
        if self.script.gate is not None:
            await self.script.gate.wait()
        if self.script.error is not None:
            raise self.script.error
        return self.script.result

    async def save(self):
        self.script.saves.append(self.index)
        if self.script.gate is not None:
            await self.script.gate.wait()
        if self.script.error is not None:
            raise self.script.error
        return True


@pytest.fixture
def script() -> Script:
    return Script()


@pytest.fixture
def registry(script):
    return tuple(
        StepDescriptor(f"step{i}", f"Step {i}", lambda ctx, idx: ScriptedStep(script, idx))
        for i in range(4)
    )


@pytest.fixture
def make_wizard(store, registry):
    def _make(**claims):
        return WizardController(store, make_user(**claims), registry=registry)
    return _make


def assert_invariants(wizard: WizardController):
    assert 0 <= wizard.current_step <= wizard.step_count - 1
    assert wizard.highest_reached_step >= wizard.current_step
    assert wizard.current.index == wizard.current_step
    assert wizard.action_in_flight == ActionInFlight.NONE


# ── Mount ────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestMount:
    """Restoring the wizard position from the store."""

    async def test_fresh_user_starts_at_zero(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount()

        assert wizard.current_step == 0
        assert wizard.highest_reached_step == 0
        assert script.loads == [0]

    async def test_resumes_stored_step(self, make_wizard, store, script):
        """Relaunch mid-wizard restores the step without re-running earlier ones."""
        store.data["activeStep"] = "2"
        wizard = make_wizard()
        await wizard.mount()

        assert wizard.current_step == 2
        assert wizard.highest_reached_step == 2
        assert wizard.current.index == 2
        assert script.submits == []
        assert script.loads == [2]

    async def test_out_of_range_step_is_reset(self, make_wizard, store):
        store.data["activeStep"] = "7"
        wizard = make_wizard()
        await wizard.mount()

        assert wizard.current_step == 0
        assert wizard.highest_reached_step == 0
        assert store.data["activeStep"] == "0"

    async def test_negative_step_is_reset(self, make_wizard, store):
        store.data["activeStep"] = "-1"
        wizard = make_wizard()
        await wizard.mount()

        assert wizard.current_step == 0
        assert store.data["activeStep"] == "0"

    async def test_malformed_step_starts_at_zero(self, make_wizard, store):
        store.data["activeStep"] = "two"
        wizard = make_wizard()
        await wizard.mount()

        assert wizard.current_step == 0

    @pytest.mark.parametrize("claims", [
        {"role": "ADMIN"},
        {"role": "EDITOR"},
        {"joineeType": "EXISTING"},
    ])
    async def test_special_user_forced_to_zero(self, make_wizard, store, claims):
        store.data["activeStep"] = "3"
        wizard = make_wizard(**claims)
        await wizard.mount()

        assert wizard.is_special_user
        assert wizard.current_step == 0
        assert wizard.highest_reached_step == 0
        assert store.data["activeStep"] == "0"

    async def test_mount_without_load(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount(load=False)
        assert script.loads == []


# ── Forward ──────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestGoNext:
    """Submitting the active step."""

    async def test_success_advances_and_persists(self, make_wizard, store, script):
        wizard = make_wizard()
        await wizard.mount()
        first = wizard.current

        outcome = await wizard.go_next()

        assert outcome == NextOutcome.ADVANCED
        assert wizard.current_step == 1
        assert wizard.highest_reached_step == 1
        assert wizard.direction == Direction.FORWARD
        assert store.data["activeStep"] == "1"
        assert wizard.current is not first
        assert wizard.current.index == 1
        assert script.submits == [0]

    async def test_failed_submit_stays(self, make_wizard, store, script):
        wizard = make_wizard()
        await wizard.mount()
        script.result = False

        outcome = await wizard.go_next()

        assert outcome == NextOutcome.STAYED
        assert wizard.current_step == 0
        assert "activeStep" not in store.data
        assert_invariants(wizard)

    async def test_last_step_loops_to_start(self, make_wizard, store):
        store.data["activeStep"] = "3"
        wizard = make_wizard()
        await wizard.mount()

        outcome = await wizard.go_next()

        assert outcome == NextOutcome.COMPLETED
        assert wizard.current_step == 0
        assert wizard.highest_reached_step == 3
        assert store.data["activeStep"] == "0"

    async def test_special_user_goes_to_profile(self, store, registry, script):
        routes = []

        async def on_navigate(route):
            routes.append(route)

        wizard = WizardController(
            store, make_user(joineeType="EXISTING"), registry=registry, on_navigate=on_navigate
        )
        await wizard.mount()

        outcome = await wizard.go_next()

        assert outcome == NextOutcome.PROFILE
        assert routes == [Route.PROFILE]
        assert wizard.current_step == 0
        assert store.data["activeStep"] == "0"

    async def test_double_tap_submits_once(self, make_wizard, script):
        """A second Next while the first is in flight is dropped."""
        wizard = make_wizard()
        await wizard.mount()
        script.gate = asyncio.Event()

        first = asyncio.create_task(wizard.go_next())
        await asyncio.sleep(0)
        second = await wizard.go_next()
        script.gate.set()

        assert second == NextOutcome.REJECTED
        assert await first == NextOutcome.ADVANCED
        assert script.submits == [0]
        assert wizard.current_step == 1

    async def test_rejected_while_step_submitting(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount()
        script.submitting = True

        assert await wizard.go_next() == NextOutcome.REJECTED
        assert script.submits == []

    async def test_error_is_contained(self, make_wizard, store, script):
        wizard = make_wizard()
        await wizard.mount()
        script.error = RuntimeError("boom")

        outcome = await wizard.go_next()

        assert outcome == NextOutcome.REJECTED
        assert wizard.current_step == 0
        assert wizard.action_in_flight == ActionInFlight.NONE
        assert "activeStep" not in store.data

        script.error = None
        assert await wizard.go_next() == NextOutcome.ADVANCED


# ── Backward and jumps ───────────────────────────────────────────

@pytest.mark.asyncio
class TestGoBackAndJump:
    """Backward navigation and step-indicator jumps."""

    async def test_back_at_first_step_is_noop(self, make_wizard, store):
        wizard = make_wizard()
        await wizard.mount()

        assert await wizard.go_back() is False
        assert wizard.current_step == 0

    async def test_back_persists(self, make_wizard, store):
        store.data["activeStep"] = "2"
        wizard = make_wizard()
        await wizard.mount()

        assert await wizard.go_back() is True
        assert wizard.current_step == 1
        assert wizard.highest_reached_step == 2
        assert wizard.direction == Direction.BACKWARD
        assert store.data["activeStep"] == "1"

    async def test_jump_within_reached_steps(self, make_wizard, store):
        store.data["activeStep"] = "3"
        wizard = make_wizard()
        await wizard.mount()

        assert await wizard.jump_to_step(1) is True
        assert wizard.current_step == 1
        assert wizard.direction == Direction.BACKWARD
        assert store.data["activeStep"] == "1"

        assert await wizard.jump_to_step(3) is True
        assert wizard.direction == Direction.FORWARD
        assert store.data["activeStep"] == "3"

    async def test_jump_past_highest_is_noop(self, make_wizard, store):
        store.data["activeStep"] = "1"
        wizard = make_wizard()
        await wizard.mount()

        assert await wizard.jump_to_step(2) is False
        assert await wizard.jump_to_step(-1) is False
        assert wizard.current_step == 1

    async def test_jump_to_current_is_noop(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount()
        loads = list(script.loads)

        assert await wizard.jump_to_step(0) is False
        assert script.loads == loads

    async def test_special_user_cannot_navigate(self, make_wizard, store):
        store.data["activeStep"] = "2"
        wizard = make_wizard(role="ADMIN")
        await wizard.mount()

        assert await wizard.go_back() is False
        for k in range(4):
            assert await wizard.jump_to_step(k) is False
        assert wizard.current_step == 0


# ── Save ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSave:
    """Draft saving is gated on dirtiness and the in-flight flag."""

    async def test_clean_step_is_not_saved(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount()

        assert await wizard.save() is False
        assert script.saves == []

    async def test_dirty_step_is_saved(self, make_wizard, store, script):
        wizard = make_wizard()
        await wizard.mount()
        script.dirty = True

        assert await wizard.save() is True
        assert script.saves == [0]
        assert wizard.current_step == 0
        assert "activeStep" not in store.data

    async def test_save_rejected_while_in_flight(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount()
        script.dirty = True
        script.gate = asyncio.Event()

        first = asyncio.create_task(wizard.save())
        await asyncio.sleep(0)
        assert await wizard.save() is False
        assert await wizard.go_next() == NextOutcome.REJECTED
        script.gate.set()

        assert await first is True
        assert script.saves == [0]
        assert script.submits == []

    async def test_save_error_clears_flag(self, make_wizard, script):
        wizard = make_wizard()
        await wizard.mount()
        script.dirty = True
        script.error = RuntimeError("disk full")

        assert await wizard.save() is False
        assert wizard.action_in_flight == ActionInFlight.NONE


# ── Invariants over random sequences ─────────────────────────────

@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(5))
async def test_random_walk_keeps_invariants(seed, make_wizard, store, script):
    rng = random.Random(seed)
    wizard = make_wizard()
    await wizard.mount()
    highest = wizard.highest_reached_step

    for _ in range(60):
        script.result = rng.random() < 0.7
        script.dirty = rng.random() < 0.5
        op = rng.choice(["next", "back", "jump", "save"])

        if op == "next":
            outcome = await wizard.go_next()
            if outcome in (NextOutcome.ADVANCED, NextOutcome.COMPLETED):
                assert store.data["activeStep"] == str(wizard.current_step)
        elif op == "back":
            if await wizard.go_back():
                assert store.data["activeStep"] == str(wizard.current_step)
        elif op == "jump":
            await wizard.jump_to_step(rng.randrange(-1, 5))
        else:
            await wizard.save()

        assert_invariants(wizard)
        assert wizard.highest_reached_step >= highest
        highest = wizard.highest_reached_step


class TestWizardPool:
    @pytest.mark.asyncio
    async def test_mount_discard_remount(self, make_wizard):
        pool = WizardPool()

        wizard = await pool.get_or_mount(1, make_wizard)
        assert await pool.get_or_mount(1, make_wizard) is wizard
        assert len(pool) == 1

        pool.discard(1)
        pool.discard(1)
        assert len(pool) == 0
        assert await pool.get_or_mount(1, make_wizard) is not wizard

    @pytest.mark.asyncio
    async def test_get_or_mount_builds_once(self, make_wizard, script):
        pool = WizardPool()
        built = []

        def build():
            built.append(make_wizard())
            return built[-1]

        first, second = await asyncio.gather(
            pool.get_or_mount(1, build), pool.get_or_mount(1, build)
        )

        assert first is second
        assert len(built) == 1
        assert first.mounted
        assert script.loads == [0]
        assert len(pool) == 1


# ── Step construction ────────────────────────────────────────────

class TestStepConstruction:
    def test_steps_receive_context_and_registry_length(self, step_context):
        received = []

        def factory(ctx, idx):
            received.append((ctx, idx))
            return ScriptedStep(Script(), idx)

        registry = tuple(StepDescriptor(f"s{i}", f"S{i}", factory) for i in range(3))
        wizard = WizardController(
            step_context.store, make_user(), context=step_context, registry=registry
        )

        assert step_context.step_count == 3
        assert wizard.step_count == 3
        assert received == [(step_context, 0)]
