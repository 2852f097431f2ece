"""Tick-driven simulations of process scheduling, synchronization, deadlock handling and memory allocation."""

__version__ = "0.1.0"
