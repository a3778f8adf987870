"""Agent-based simulation of emergent population patterns."""

__version__ = "0.1.0"
