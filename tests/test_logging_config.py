import json
import logging

from arbiter.logging_config import JSONFormatter, conversation_logger, get_logger


def _record(message, **extra):
    record = logging.LogRecord("arbiter.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_renders_single_json_line(self):
        line = JSONFormatter().format(_record("FAQ matched"))
        data = json.loads(line)
        assert data["level"] == "INFO"
        assert data["logger"] == "arbiter.test"
        assert data["message"] == "FAQ matched"
        assert "context" not in data

    def test_includes_context(self):
        line = JSONFormatter().format(_record("Released", context={"phone_number": "5511", "idle_minutes": 31}))
        assert json.loads(line)["context"] == {"phone_number": "5511", "idle_minutes": 31}

    def test_non_serializable_context_is_stringified(self):
        class AgentId:
            def __str__(self):
                return "agent-1"

        line = JSONFormatter().format(_record("x", context={"agent_id": AgentId()}))
        assert json.loads(line)["context"]["agent_id"] == "agent-1"


class TestLoggers:
    def test_get_logger_prefix(self):
        assert get_logger("faq_matcher").name == "arbiter.faq_matcher"

    def test_conversation_logger_merges_context(self, caplog):
        log = conversation_logger(get_logger("test"), "agent-1", "5511")
        with caplog.at_level(logging.INFO, logger="arbiter.test"):
            log.info("Suppressed", context={"reason": "human_held"})

        record = caplog.records[-1]
        assert record.context == {"agent_id": "agent-1", "phone_number": "5511", "reason": "human_held"}
