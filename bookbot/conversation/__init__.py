from bookbot.conversation.dispatcher import ConversationDispatcher
from bookbot.conversation.handoff import HandoffController
from bookbot.conversation.state_machine import (
    ConversationRouter,
    ConversationStateMachine,
    InvalidTransitionError,
    TransitionTrigger,
    TurnResult,
)

__all__ = [
    "ConversationDispatcher",
    "ConversationRouter",
    "ConversationStateMachine",
    "HandoffController",
    "InvalidTransitionError",
    "TransitionTrigger",
    "TurnResult",
]
