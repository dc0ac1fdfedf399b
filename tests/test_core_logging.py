"""Tests for the sanitizing log filter: titles and notes never reach handlers."""

from __future__ import annotations

import logging

import pytest

from timetree.core.logging import (
    SanitizingFilter,
    configure_cli_logging,
    install_sanitizing_filter,
    redact_message,
)


class TestRedactMessage:
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("window_title=Secret.docx opened", "window_title=[REDACTED] opened"),
            ("title: Quarterly plan", "title=[REDACTED] plan"),
            ('notes="call the bank" saved', "notes=[REDACTED] saved"),
            ("URL=https://example.com/x", "URL=[REDACTED]"),
            ("app_id=com.apple.Safari", "app_id=com.apple.Safari"),
        ],
    )
    def test_redaction(self, message: str, expected: str) -> None:
        assert redact_message(message) == expected

    def test_key_suffix_not_matched_inside_word(self) -> None:
        assert redact_message("subtitle=visible") == "subtitle=visible"


class TestSanitizingFilter:
    def test_formats_args_before_redacting(self) -> None:
        record = logging.LogRecord(
            "timetree.test", logging.DEBUG, __file__, 1, "window_title=%s count=%d", ("secret", 3), None,
        )
        assert SanitizingFilter().filter(record) is True
        assert record.getMessage() == "window_title=[REDACTED] count=3"

    def test_installs_on_logger(self) -> None:
        logger = logging.getLogger("timetree.test.install")
        filt = install_sanitizing_filter(logger)
        try:
            assert filt in logger.filters
        finally:
            logger.removeFilter(filt)

    def test_installs_on_handlers(self) -> None:
        logger = logging.getLogger("timetree.test.handlers")
        handler = logging.NullHandler()
        logger.addHandler(handler)
        try:
            filt = install_sanitizing_filter(logger, handler_level=True)
            assert filt in handler.filters
            assert filt not in logger.filters
        finally:
            logger.removeHandler(handler)


class TestConfigureCliLogging:
    def test_verbose_sets_debug(self) -> None:
        configure_cli_logging(verbose=True)
        pkg_logger = logging.getLogger("timetree")
        assert pkg_logger.level == logging.DEBUG
        assert len(pkg_logger.handlers) == 1
        assert any(isinstance(f, SanitizingFilter) for f in pkg_logger.handlers[0].filters)

    def test_quiet_by_default(self) -> None:
        configure_cli_logging()
        assert logging.getLogger("timetree").level == logging.WARNING

    def test_repeated_calls_do_not_stack_handlers(self) -> None:
        configure_cli_logging()
        configure_cli_logging()
        assert len(logging.getLogger("timetree").handlers) == 1

    def test_filter_sits_on_handler_not_logger(self) -> None:
        configure_cli_logging()
        pkg_logger = logging.getLogger("timetree")
        assert not any(isinstance(f, SanitizingFilter) for f in pkg_logger.filters)
        assert len(pkg_logger.handlers[0].filters) == 1
