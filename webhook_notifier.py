"""
Make.com Webhook Notifier
Forwards assembled match notifications to the content automation webhook
"""

import requests
import logging
from typing import Dict, Optional
import config
from match_events import DispatchResult


class WebhookNotifier:
    """Handle all webhook communication with the content pipeline"""

    def __init__(self, webhook_url: Optional[str] = None, timeout: float = config.REQUEST_TIMEOUT):
        self.webhook_url = webhook_url if webhook_url is not None else config.MAKE_WEBHOOK_URL
        self.timeout = timeout
        self.logger = logging.getLogger(__name__)

    def dispatch(self, payload: Dict) -> DispatchResult:
        """
        POST a notification payload to the webhook

        Args:
            payload: Flat JSON payload from the notification assembler

        Returns:
            DispatchResult; failures are reported, never raised
        """
        if not self.webhook_url:
            self.logger.error("Make webhook not configured")
            return DispatchResult(success=False, error_detail='Make webhook not configured')

        headers = {'content-type': 'application/json'}
        if payload.get('idempotency_key'):
            headers['Idempotency-Key'] = payload['idempotency_key']

        try:
            response = requests.post(self.webhook_url, json=payload, headers=headers, timeout=self.timeout)
        except requests.Timeout:
            self.logger.error(f"Webhook timed out after {self.timeout}s for {payload.get('event_type')}")
            return DispatchResult(success=False, error_detail=f"timeout after {self.timeout}s")
        except requests.RequestException as e:
            self.logger.error(f"Failed to send webhook: {e}")
            return DispatchResult(success=False, error_detail=str(e))

        if 200 <= response.status_code < 300:
            self.logger.info(f"Webhook sent: {payload.get('event_type')} ({payload.get('minute')}')")
            return DispatchResult(success=True, status_code=response.status_code)

        self.logger.error(f"Webhook error {response.status_code}: {response.text}")
        return DispatchResult(
            success=False,
            error_detail=f"Make failed {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
        )
