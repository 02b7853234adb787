from admission_bot.conversation.state_machine import (
    ConversationStateMachine,
    InvalidTransitionError,
    SessionState,
    TransitionTrigger,
)

__all__ = [
    "ConversationStateMachine",
    "InvalidTransitionError",
    "SessionState",
    "TransitionTrigger",
]
