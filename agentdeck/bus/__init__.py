"""Per-session event channels between adapters and consumers."""

from agentdeck.bus.channels import EventBus, SessionChannel, SessionListener
from agentdeck.bus.events import CompleteEvent, OutputEvent, SessionEvent

__all__ = [
    "CompleteEvent",
    "EventBus",
    "OutputEvent",
    "SessionChannel",
    "SessionEvent",
    "SessionListener",
]
