import logging

import structlog

from utils import configure_logging


def test_logging_level_follows_latest_configuration():
    logger = structlog.get_logger()
    try:
        configure_logging("INFO")
        assert logger.bind().is_enabled_for(logging.INFO)

        configure_logging("ERROR")
        assert not logger.bind().is_enabled_for(logging.INFO)
        assert logger.bind().is_enabled_for(logging.ERROR)
    finally:
        configure_logging("INFO")


def test_unknown_level_falls_back_to_info():
    try:
        configure_logging("chatty")
        logger = structlog.get_logger().bind()
        assert logger.is_enabled_for(logging.INFO)
        assert not logger.is_enabled_for(logging.DEBUG)
    finally:
        configure_logging("INFO")
