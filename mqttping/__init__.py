"""
MQTTPing - MQTT round-trip latency probe

Sends correlated probe messages over an MQTT topic, matches the responses
that come back through the intermediary hops, and reports end-to-end and
per-hop latency statistics.
"""

__version__ = "1.0.0"
__author__ = "MQTTPing Authors"
__license__ = "MIT"

from .core.config import Config
from .core.logger import setup_logging

__all__ = ["Config", "setup_logging"]
