"""Tick-driven simulator of processors, caches, coherence, interconnect and memory."""

__version__ = "0.1.0"