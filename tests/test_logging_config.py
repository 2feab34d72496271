"""Tests for structlog configuration."""

import json
import logging

import pytest
import structlog

from status_tracker.config import Environment, Settings, StorageBackend
from status_tracker.logging_config import (
    build_processors,
    configure_logging,
    get_logger,
    log_context,
)


@pytest.fixture(autouse=True)
def reset_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    for handler in root.handlers[:]:
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    structlog.reset_defaults()
    structlog.contextvars.clear_contextvars()


class TestBuildProcessors:
    def test_console_renderer_outside_production(self):
        processors = build_processors(Settings(environment=Environment.DEVELOPMENT))

        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_json_renderer_in_production(self):
        processors = build_processors(Settings(environment=Environment.PRODUCTION))

        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_json_events_carry_service_context(self):
        settings = Settings(
            environment=Environment.PRODUCTION, storage_backend=StorageBackend.MEMORY
        )
        stdlib_logger = logging.getLogger("status_tracker.tests")
        event = {"event": "status_created", "status_id": "s1"}
        for processor in build_processors(settings):
            event = processor(stdlib_logger, "info", event)

        rendered = json.loads(event)

        assert rendered["storage_backend"] == "memory"
        assert rendered["environment"] == "production"
        assert rendered["status_id"] == "s1"


class TestConfigureLogging:
    def test_events_reach_stdlib_handlers(self, caplog, tmp_path):
        log_file = tmp_path / "logs" / "st.log"
        settings = Settings(environment=Environment.PRODUCTION, log_file=log_file)
        configure_logging(settings)
        logger = get_logger("status_tracker.tests")

        with caplog.at_level(logging.INFO, logger="status_tracker.tests"):
            with log_context(command="update"):
                logger.info("status_updated", status_id="s1")

        assert "status_updated" in caplog.text
        assert '"command": "update"' in caplog.text
        assert log_file.exists()

    def test_context_is_unbound_after_block(self, caplog):
        configure_logging(Settings(environment=Environment.PRODUCTION))
        logger = get_logger("status_tracker.tests")

        with caplog.at_level(logging.INFO, logger="status_tracker.tests"):
            with log_context(command="search"):
                pass
            logger.info("search_completed")

        assert "command" not in caplog.text
