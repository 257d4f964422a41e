"""
Ordered registry of onboarding steps.
"""
from dataclasses import dataclass
from typing import Callable, Tuple

from hrbot.onboarding.steps import (
    AgreementStep,
    BankStep,
    DocumentsStep,
    PersonalStep,
    StepContext,
    StepController,
)

StepFactory = Callable[[StepContext, int], StepController]


@dataclass(frozen=True)
class StepDescriptor:
    """A wizard page: its name, heading and how to build its controller."""
    name: str
    title: str
    factory: StepFactory


STEP_REGISTRY: Tuple[StepDescriptor, ...] = (
    StepDescriptor(PersonalStep.name, PersonalStep.title, PersonalStep),
    StepDescriptor(DocumentsStep.name, DocumentsStep.title, DocumentsStep),
    StepDescriptor(BankStep.name, BankStep.title, BankStep),
    StepDescriptor(AgreementStep.name, AgreementStep.title, AgreementStep),
)


def build_step(
    index: int,
    context: StepContext,
    registry: Tuple[StepDescriptor, ...] = STEP_REGISTRY,
) -> StepController:
    """Instantiate the controller for the step at index."""
    return registry[index].factory(context, index)
