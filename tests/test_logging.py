"""Tests for setup_logging — stdlib library loggers land in loguru."""
from __future__ import annotations

import logging

from loguru import logger

from mission_control.logging import setup_logging


def test_discord_records_routed_to_loguru() -> None:
    setup_logging("DEBUG")
    seen = []
    sink_id = logger.add(lambda msg: seen.append(msg.record["message"]), level="DEBUG")
    try:
        logging.getLogger("discord.gateway").warning("shard reconnecting")
    finally:
        logger.remove(sink_id)
    assert "[discord.gateway] shard reconnecting" in seen
