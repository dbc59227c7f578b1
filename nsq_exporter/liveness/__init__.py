"""Liveness tracking for nodes, topics and topic/channel combos."""

from .ledger import LivenessLedger

__all__ = ["LivenessLedger"]
