"""Self-adaptation loop for a simulated body sensor network: engines, enactor controller, parameter adapter and messages."""

__version__ = "0.1.0"