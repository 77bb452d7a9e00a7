"""
Run summary notifications for MQTTPing.
"""

import logging
from typing import Any, Dict

import requests

from ..core.config import MonitoringConfig


class WebhookNotifier:
    """Posts a JSON summary of a finished run to the configured webhook."""

    def __init__(self, config: MonitoringConfig, session: requests.Session = None):
        self.config = config
        self.logger = logging.getLogger(__name__)
        self._session = session or requests.Session()
        self._headers = {
            'Content-Type': 'application/json'
        }

    @property
    def enabled(self) -> bool:
        return self.config.webhook_enabled and bool(self.config.webhook_url)

    def notify(self, summary: Dict[str, Any]) -> bool:
        """Send ``summary``; returns True when the webhook accepted it."""
        if not self.enabled:
            return False

        try:
            response = self._session.post(
                self.config.webhook_url,
                json=summary,
                headers=self._headers,
                timeout=10
            )
        except requests.RequestException as e:
            self.logger.error(f"Failed to post run summary: {e}")
            return False

        if response.status_code >= 400:
            self.logger.error(f"Webhook rejected run summary: {response.status_code}")
            return False

        self.logger.info(f"Run summary posted to {self.config.webhook_url}")
        return True
