"""Cross-engine conversation transcripts."""

from agentdeck.conversation.bridge import (
    Conversation,
    ConversationBridge,
    ConversationMessage,
    Role,
)

__all__ = ["Conversation", "ConversationBridge", "ConversationMessage", "Role"]
