"""
Onboarding wizard: steps, registry, resume-point resolution.
"""
from hrbot.onboarding.registry import STEP_REGISTRY, StepDescriptor, build_step
from hrbot.onboarding.resolver import ResumeDecision, apply_resume_point, resolve
from hrbot.onboarding.steps import StepContext, StepController
from hrbot.onboarding.wizard import NextOutcome, WizardController, WizardPool

__all__ = [
    "STEP_REGISTRY",
    "StepDescriptor",
    "build_step",
    "ResumeDecision",
    "apply_resume_point",
    "resolve",
    "StepContext",
    "StepController",
    "NextOutcome",
    "WizardController",
    "WizardPool",
]
