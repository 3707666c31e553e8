"""Ammo count decoding and the capture trigger."""

from .decode import decode
from .trigger import AmmoTrigger, TriggerOutcome, TriggerState, update

__all__ = ["AmmoTrigger", "TriggerOutcome", "TriggerState", "decode", "update"]
