"""
Domain models for the installer.

Re-exports the core types so callers can write
``from bootstrapper.core.models import Step, RunContext``.
"""

from bootstrapper.core.models.action import Action, Receipt
from bootstrapper.core.models.context import (
    PlatformFacts,
    RunContext,
    RunOptions,
    WarningRecord,
)
from bootstrapper.core.models.credential import Credential, CredentialSource
from bootstrapper.core.models.device import (
    AudioDevice,
    DeviceCategory,
    DeviceDetection,
    DeviceKind,
    DeviceReport,
    DeviceState,
)
from bootstrapper.core.models.outcome import Outcome, OutcomeKind
from bootstrapper.core.models.step import (
    Capability,
    CapabilityKind,
    FailurePolicy,
    ProbeResult,
    Step,
)
from bootstrapper.core.models.summary import RunSummary

__all__ = [
    "Action",
    "AudioDevice",
    "Capability",
    "CapabilityKind",
    "Credential",
    "CredentialSource",
    "DeviceCategory",
    "DeviceDetection",
    "DeviceKind",
    "DeviceReport",
    "DeviceState",
    "FailurePolicy",
    "Outcome",
    "OutcomeKind",
    "PlatformFacts",
    "ProbeResult",
    "Receipt",
    "RunContext",
    "RunOptions",
    "RunSummary",
    "Step",
    "WarningRecord",
]
