from enum import Enum


class ConversationOwnership(str, Enum):
    AUTOMATED = "automated"
    HUMAN_HELD = "human_held"


VALID_TRANSITIONS = {
    ConversationOwnership.AUTOMATED: [ConversationOwnership.HUMAN_HELD],
    ConversationOwnership.HUMAN_HELD: [ConversationOwnership.AUTOMATED],
}


class InvalidTransitionError(Exception):
    def __init__(self, from_state: ConversationOwnership, to_state: ConversationOwnership):
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(f"Invalid transition: {from_state.value} -> {to_state.value}")


def can_transition(from_state: ConversationOwnership, to_state: ConversationOwnership) -> bool:
    """Check if transition is valid."""
    return to_state in VALID_TRANSITIONS.get(from_state, [])


def transition(from_state: ConversationOwnership, to_state: ConversationOwnership) -> ConversationOwnership:
    """Perform state transition. Raises InvalidTransitionError if not allowed."""
    if not can_transition(from_state, to_state):
        raise InvalidTransitionError(from_state, to_state)
    return to_state


def take_over(current_state: ConversationOwnership) -> ConversationOwnership:
    """Human operator sends a message.

    From HUMAN_HELD this is a refresh of the takeover timestamp, not a transition.
    """
    if current_state == ConversationOwnership.HUMAN_HELD:
        return current_state
    return transition(current_state, ConversationOwnership.HUMAN_HELD)


def release(current_state: ConversationOwnership) -> ConversationOwnership:
    """Inactivity timeout or manual resume hands the conversation back to the bot."""
    return transition(current_state, ConversationOwnership.AUTOMATED)


def check_invariants(conversation) -> list[str]:
    """Return the list of invariant violations for a conversation row."""
    violations = []

    try:
        ownership = ConversationOwnership(conversation.ownership)
    except ValueError:
        return ["unknown_ownership"]

    if ownership == ConversationOwnership.HUMAN_HELD and conversation.taken_over_at is None:
        violations.append("human_held_without_timestamp")

    if ownership == ConversationOwnership.AUTOMATED and conversation.taken_over_at is not None:
        violations.append("automated_with_timestamp")

    return violations
