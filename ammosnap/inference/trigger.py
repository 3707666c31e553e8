"""Decide when a frame shows the ammo counter going down."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..core.network import NeuralNetwork
from ..core.layers import NoiseLayer
from ..errors import DecodeAmbiguity
from ..vision.digits import DigitLayout, extract_digit_images
from ..vision.image import RGBImage
from .decode import decode

L = logging.getLogger("ammosnap.trigger")


class TriggerOutcome(str, Enum):
    NO_CHANGE = "no_change"
    DECREASED = "decreased"
    INCREASED = "increased"
    RESET = "reset"

    @property
    def triggers_capture(self) -> bool:
        return self is TriggerOutcome.DECREASED


@dataclass
class TriggerState:
    """Last successfully decoded count; ``None`` until a baseline is seen."""

    last_decoded_count: Optional[int] = None

    def reset(self) -> TriggerOutcome:
        self.last_decoded_count = None
        return TriggerOutcome.RESET


def update(state: TriggerState, value: Optional[int]) -> TriggerOutcome:
    """Fold one decoded value into ``state``.

    ``value=None`` is an unparseable frame and leaves the state alone so a
    single noisy frame cannot corrupt the history.  The first value after a
    reset only sets the baseline.  An increase (e.g. a reload) is reported
    but never triggers; it becomes the new baseline.
    """

    if value is None:
        return TriggerOutcome.NO_CHANGE
    previous = state.last_decoded_count
    state.last_decoded_count = value
    if previous is None or value == previous:
        return TriggerOutcome.NO_CHANGE
    if value < previous:
        return TriggerOutcome.DECREASED
    return TriggerOutcome.INCREASED


class AmmoTrigger:
    """Frame-by-frame capture trigger for the single inference call site."""

    def __init__(
        self,
        network: NeuralNetwork,
        layout: DigitLayout,
        *,
        min_confidence: float = 0.5,
    ) -> None:
        if any(isinstance(layer, NoiseLayer) for layer in network.layers):
            network = network.without_noise()
        self.network = network
        self.layout = layout
        self.min_confidence = min_confidence
        self.state = TriggerState()

    def read(self, frame: RGBImage) -> Optional[int]:
        crops = extract_digit_images(frame, self.layout)
        try:
            return decode(self.network, crops, min_confidence=self.min_confidence)
        except DecodeAmbiguity as exc:
            L.debug("Unparseable ammo counter: %s", exc)
            return None

    def observe(self, frame: RGBImage) -> TriggerOutcome:
        outcome = update(self.state, self.read(frame))
        if outcome.triggers_capture:
            L.debug("Ammo decreased to %s", self.state.last_decoded_count)
        return outcome

    def should_capture(self, frame: RGBImage) -> bool:
        """Observe ``frame`` and say whether a screenshot should be taken now."""

        return self.observe(frame).triggers_capture

    def reset(self) -> TriggerOutcome:
        return self.state.reset()


__all__ = ["AmmoTrigger", "TriggerOutcome", "TriggerState", "update"]
