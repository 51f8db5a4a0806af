from arbiter.services.arbiter_service import (
    ArbitrationOutcome,
    ReplyAction,
    arbitrate_inbound,
    register_owner_echo,
    send_manual_message,
)
from arbiter.services.conversation_registry import (
    RegistryUnavailable,
    get_ownership,
    is_automated_control,
    mark_human_takeover,
    release_to_automated,
)
from arbiter.services.faq_matcher import MatchLookupFailed, extract_keywords, match_faq
from arbiter.services.message_service import save_message
from arbiter.services.state_machine import (
    ConversationOwnership,
    InvalidTransitionError,
    can_transition,
    release,
    take_over,
    transition,
)
from arbiter.services.usage_ledger import UsageRecordFailed, record_usage
