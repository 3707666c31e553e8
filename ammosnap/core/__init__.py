"""Core numerical primitives for ammosnap."""

from . import activations, layers, network, types

__all__ = ["activations", "layers", "network", "types"]
