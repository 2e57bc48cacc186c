"""Tests for structured logging."""

import logging

from plume.utils.enhanced_logger import log_with_context, setup_enhanced_logging


class TestLogWithContext:
    """Test context formatting."""

    def test_context_appended(self, caplog):
        """Test that context becomes key=value pairs with truncated item ids."""
        logger = setup_enhanced_logging()

        with caplog.at_level(logging.INFO, logger="plume"):
            log_with_context(
                logger, 'info', 'Image compressed',
                item_id='0123456789abcdef', ratio=0.5, tags=['png', 'webp'], name='cat.png'
            )

        record = caplog.records[-1]
        assert record.getMessage() == (
            'Image compressed | item_id=01234567... | ratio=0.50 | tags=["png","webp"] | name=cat.png'
        )
        assert record.item_id == '0123456789abcdef'
        assert record.context['name'] == 'cat.png'

    def test_plain_message(self, caplog):
        """Test that messages without context are left alone."""
        logger = setup_enhanced_logging()

        with caplog.at_level(logging.INFO, logger="plume"):
            log_with_context(logger, 'warning', 'Store unavailable')

        assert caplog.records[-1].getMessage() == 'Store unavailable'
        assert caplog.records[-1].levelno == logging.WARNING

    def test_disabled_level_skipped(self, caplog):
        """Test that filtered levels build no record."""
        logger = setup_enhanced_logging()

        with caplog.at_level(logging.WARNING, logger="plume"):
            log_with_context(logger, 'debug', 'Tick', progress=12.5)

        assert not [r for r in caplog.records if r.getMessage().startswith('Tick')]
