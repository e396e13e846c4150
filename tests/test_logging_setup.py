"""Tests for the structured logger factory."""

import json
import logging

from remote_config.common.logging_setup import JsonFormatter, get_service_logger


class Collecting(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestGetServiceLogger:
    def test_records_do_not_reach_root_handlers(self):
        root_handler = Collecting()
        root = logging.getLogger()
        root.addHandler(root_handler)
        try:
            logger = get_service_logger("test.propagation")
            logger.warning("hello")
        finally:
            root.removeHandler(root_handler)

        assert root_handler.records == []
        assert logger.logger.propagate is False
        assert len(logger.logger.handlers) == 1

    def test_bound_context_added_to_records(self):
        logger = get_service_logger("test.context", collection_id="release")
        handler = Collecting()
        logger.logger.addHandler(handler)

        channel_logger = logger.bind(channel="databases.rc.collections.release.documents")
        channel_logger.warning("update", extra={"key": "cdnUrl"})
        logger.warning("plain", extra={"collection_id": "override"})

        first, second = handler.records
        assert first.service == "test.context"
        assert first.collection_id == "release"
        assert first.channel == "databases.rc.collections.release.documents"
        assert first.key == "cdnUrl"
        assert second.collection_id == "override"
        assert not hasattr(second, "channel")

    def test_json_output_includes_context(self):
        logger = get_service_logger("test.json", channel="chan")
        handler = Collecting()
        logger.logger.addHandler(handler)

        logger.info("subscribed", extra={"key_count": 3})

        data = json.loads(JsonFormatter().format(handler.records[0]))
        assert data["service"] == "test.json"
        assert data["message"] == "subscribed"
        assert data["channel"] == "chan"
        assert data["key_count"] == 3
