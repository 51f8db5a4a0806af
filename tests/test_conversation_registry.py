from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from arbiter.services.conversation_registry import (
    RegistryUnavailable,
    ensure_utc,
    find_human_held,
    get_conversation,
    get_ownership,
    is_automated_control,
    list_conversations,
    mark_human_takeover,
    release_to_automated,
    revert_takeover,
    touch_conversation,
)
from arbiter.services.state_machine import ConversationOwnership, check_invariants

PHONE = "5511999990000"
T0 = datetime(2026, 3, 1, 10, 0, tzinfo=timezone.utc)


class TestTouchConversation:
    def test_first_contact_is_automated(self, db, agent):
        conversation = touch_conversation(db, agent.id, PHONE, now=T0)
        db.commit()

        assert conversation.ownership == "automated"
        assert conversation.taken_over_at is None
        assert check_invariants(conversation) == []

    def test_touch_does_not_change_ownership(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        conversation = touch_conversation(db, agent.id, PHONE, now=T0 + timedelta(minutes=5))
        db.commit()

        assert conversation.ownership == "human_held"
        assert ensure_utc(conversation.taken_over_at) == T0
        assert ensure_utc(conversation.last_message_at) == T0 + timedelta(minutes=5)


class TestMarkHumanTakeover:
    def test_creates_human_held_record(self, db, agent):
        conversation = mark_human_takeover(db, agent.id, PHONE, now=T0)
        db.commit()

        assert conversation.ownership == "human_held"
        assert ensure_utc(conversation.taken_over_at) == T0
        assert check_invariants(conversation) == []

    def test_switches_existing_automated_conversation(self, db, agent):
        touch_conversation(db, agent.id, PHONE, now=T0)
        conversation = mark_human_takeover(db, agent.id, PHONE, now=T0 + timedelta(minutes=1))
        db.commit()

        assert conversation.ownership == "human_held"
        assert ensure_utc(conversation.taken_over_at) == T0 + timedelta(minutes=1)
        assert len(list_conversations(db, agent.id)) == 1

    def test_later_timestamp_wins_in_order(self, db, agent):
        t1, t2 = T0, T0 + timedelta(minutes=3)
        mark_human_takeover(db, agent.id, PHONE, now=t1)
        conversation = mark_human_takeover(db, agent.id, PHONE, now=t2)
        db.commit()

        assert ensure_utc(conversation.taken_over_at) == t2

    def test_later_timestamp_wins_out_of_order(self, db, agent):
        t1, t2 = T0, T0 + timedelta(minutes=3)
        mark_human_takeover(db, agent.id, PHONE, now=t2)
        conversation = mark_human_takeover(db, agent.id, PHONE, now=t1)
        db.commit()

        assert conversation.ownership == "human_held"
        assert ensure_utc(conversation.taken_over_at) == t2


class TestOwnershipQueries:
    def test_unknown_conversation_is_automated(self, db, agent):
        assert get_ownership(db, agent.id, PHONE) == ConversationOwnership.AUTOMATED
        assert is_automated_control(db, agent.id, PHONE) is True
        assert get_conversation(db, agent.id, PHONE) is None

    def test_human_held(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        db.commit()
        assert get_ownership(db, agent.id, PHONE) == ConversationOwnership.HUMAN_HELD
        assert is_automated_control(db, agent.id, PHONE) is False

    def test_scoped_by_agent(self, db, make_agent):
        first, second = make_agent(), make_agent()
        mark_human_takeover(db, first.id, PHONE, now=T0)
        db.commit()
        assert is_automated_control(db, second.id, PHONE) is True

    def test_storage_error_raises_registry_unavailable(self, db_session):
        db_session.execute.side_effect = OperationalError("SELECT", {}, Exception("db down"))
        with pytest.raises(RegistryUnavailable) as exc_info:
            get_ownership(db_session, "agent-1", PHONE)
        assert exc_info.value.operation == "get_ownership"


class TestReleaseToAutomated:
    def test_release_clears_timestamp(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        released = release_to_automated(db, agent.id, PHONE)
        db.commit()

        conversation = get_conversation(db, agent.id, PHONE)
        assert released is True
        assert conversation.ownership == "automated"
        assert conversation.taken_over_at is None
        assert check_invariants(conversation) == []

    def test_release_with_stale_expectation_is_a_no_op(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        mark_human_takeover(db, agent.id, PHONE, now=T0 + timedelta(minutes=10))
        released = release_to_automated(db, agent.id, PHONE, expected_taken_over_at=T0)
        db.commit()

        conversation = get_conversation(db, agent.id, PHONE)
        assert released is False
        assert conversation.ownership == "human_held"
        assert ensure_utc(conversation.taken_over_at) == T0 + timedelta(minutes=10)

    def test_release_with_matching_expectation(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        assert release_to_automated(db, agent.id, PHONE, expected_taken_over_at=T0) is True

    def test_release_of_automated_conversation(self, db, agent):
        touch_conversation(db, agent.id, PHONE, now=T0)
        assert release_to_automated(db, agent.id, PHONE) is False


class TestRevertTakeover:
    def test_revert_first_takeover_releases(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        assert revert_takeover(db, agent.id, PHONE, applied_at=T0, previous_taken_over_at=None) is True
        db.commit()
        assert get_ownership(db, agent.id, PHONE) == ConversationOwnership.AUTOMATED

    def test_revert_refresh_restores_previous_timestamp(self, db, agent):
        earlier = T0 - timedelta(minutes=20)
        mark_human_takeover(db, agent.id, PHONE, now=earlier)
        mark_human_takeover(db, agent.id, PHONE, now=T0)

        assert revert_takeover(db, agent.id, PHONE, applied_at=T0, previous_taken_over_at=earlier) is True
        db.commit()

        conversation = get_conversation(db, agent.id, PHONE)
        assert conversation.ownership == "human_held"
        assert ensure_utc(conversation.taken_over_at) == earlier

    def test_revert_leaves_newer_takeover_alone(self, db, agent):
        mark_human_takeover(db, agent.id, PHONE, now=T0)
        mark_human_takeover(db, agent.id, PHONE, now=T0 + timedelta(seconds=30))

        assert revert_takeover(db, agent.id, PHONE, applied_at=T0, previous_taken_over_at=None) is False
        db.commit()
        assert get_ownership(db, agent.id, PHONE) == ConversationOwnership.HUMAN_HELD


class TestFindHumanHeld:
    def test_returns_held_rows_with_agent_timeout(self, db, make_agent):
        patient = make_agent(takeover_timeout_minutes=120)
        default = make_agent()
        mark_human_takeover(db, patient.id, PHONE, now=T0)
        mark_human_takeover(db, default.id, PHONE, now=T0)
        touch_conversation(db, default.id, "5511888880000", now=T0)
        db.commit()

        rows = find_human_held(db)
        timeouts = {conversation.agent_id: timeout for conversation, timeout in rows}
        assert timeouts == {patient.id: 120, default.id: None}
