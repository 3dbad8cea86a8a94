"""Consent-mode parameter extraction and comparison."""

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from ..models.audit import ClassifiedRequest, ConsentModeDiff, ConsentModeSignal
from ..utils.url_normalizer import query_params

logger = logging.getLogger(__name__)

MAX_SIGNAL_URL_LENGTH = 120


class ConsentModeExtractor:
    """Reads consent-mode parameters off classified vendor requests."""

    def __init__(self, params: Sequence[str] = ("gcs", "gcd"), vendors: Sequence[str] = ("Google",)):
        if len(params) != 2:
            raise ValueError("Consent mode needs exactly two parameter names (state, defaults)")
        self.state_param, self.defaults_param = params
        self.vendors = set(vendors)

    def extract(
        self,
        classified: Iterable[Tuple[str, Optional[ClassifiedRequest]]]
    ) -> List[ConsentModeSignal]:
        """Collect signals from ``(url, classification)`` pairs.

        Only requests attributed to a consent-mode vendor are inspected;
        requests carrying neither parameter produce no signal.
        """
        signals = []
        for url, classification in classified:
            if classification is None or classification.vendor not in self.vendors:
                continue
            query = query_params(url)
            state = query.get(self.state_param, [None])[0]
            defaults = query.get(self.defaults_param, [None])[0]
            if not state and not defaults:
                continue
            signals.append(ConsentModeSignal(
                url=url[:MAX_SIGNAL_URL_LENGTH],
                gcs=state or "-",
                gcd=defaults or "-",
            ))
        return signals


def _unique_states(signals: Iterable[ConsentModeSignal]) -> List[str]:
    states = []
    for signal in signals:
        if signal.state not in states:
            states.append(signal.state)
    return states


def diff_consent_mode(
    previous: Iterable[ConsentModeSignal],
    current: Iterable[ConsentModeSignal]
) -> ConsentModeDiff:
    """Compare the consent-mode states of two phases.

    Returns:
        ConsentModeDiff; ``updated`` is True when the current phase carries
        a state the previous one never did
    """
    before = _unique_states(previous)
    after = _unique_states(current)
    new_states = [state for state in after if state not in before]
    return ConsentModeDiff(
        previous=before,
        current=after,
        new_states=new_states,
        updated=bool(new_states),
    )


def consent_mode_type(pre_consent: Sequence[ConsentModeSignal]) -> str:
    """``advanced`` when vendors already ping before consent, else ``basic``."""
    return "advanced" if pre_consent else "basic"
