"""Audit orchestration: phase state machine, phase recording and funnel steps."""

from .funnel_runner import FunnelRunner, StepSkipped
from .orchestrator import ConsentAudit, ContextFactory
from .phases import TRANSITIONS, PhaseStateMachine
from .recorder import PhaseCapture, PhaseRecorder

__all__ = [
    "ConsentAudit",
    "ContextFactory",
    "FunnelRunner",
    "PhaseCapture",
    "PhaseRecorder",
    "PhaseStateMachine",
    "StepSkipped",
    "TRANSITIONS",
]
