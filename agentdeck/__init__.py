"""agentdeck: run interchangeable AI coding agents against local projects."""

__version__ = "0.1.0"
