"""Diagnostics helpers."""

from .rarity_simulator import RaritySimulator, SimulationResult

__all__ = ["RaritySimulator", "SimulationResult"]
