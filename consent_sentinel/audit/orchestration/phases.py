"""Audit phase state machine."""

import logging
from typing import Dict, FrozenSet, List

from ..errors import AuditError
from ..models.audit import AuditPhase

logger = logging.getLogger(__name__)

# DONE is reachable from every state so a run can terminate early. The reject
# context is independent of the accept lineage, so it may follow an aborted
# pre-consent phase.
TRANSITIONS: Dict[AuditPhase, FrozenSet[AuditPhase]] = {
    AuditPhase.INIT: frozenset({AuditPhase.DETECT_CMP}),
    AuditPhase.DETECT_CMP: frozenset({AuditPhase.PRE_CONSENT}),
    AuditPhase.PRE_CONSENT: frozenset({AuditPhase.POST_ACCEPT, AuditPhase.POST_REJECT}),
    AuditPhase.POST_ACCEPT: frozenset({AuditPhase.FUNNEL_STEP, AuditPhase.POST_REJECT}),
    AuditPhase.FUNNEL_STEP: frozenset({AuditPhase.FUNNEL_STEP, AuditPhase.POST_REJECT}),
    AuditPhase.POST_REJECT: frozenset(),
    AuditPhase.DONE: frozenset(),
}


class PhaseStateMachine:
    """Tracks the current audit phase and rejects illegal transitions."""

    def __init__(self):
        self.state = AuditPhase.INIT
        self.history: List[AuditPhase] = [AuditPhase.INIT]

    def can_advance(self, target: AuditPhase) -> bool:
        if target == AuditPhase.DONE:
            return self.state != AuditPhase.DONE
        return target in TRANSITIONS[self.state]

    def advance(self, target: AuditPhase) -> None:
        """Move to ``target``.

        Raises:
            AuditError: If the transition is not allowed from the current state
        """
        if not self.can_advance(target):
            raise AuditError(f"Illegal phase transition {self.state.value} -> {target.value}")
        logger.debug(f"Phase {self.state.value} -> {target.value}")
        self.state = target
        self.history.append(target)

    @property
    def done(self) -> bool:
        return self.state == AuditPhase.DONE
