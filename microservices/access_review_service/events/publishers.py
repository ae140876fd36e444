"""
Access Review Event Publishers

Publishes audit events to NATS JetStream.
"""

import logging

from .models import AccessReviewAuditEvent

logger = logging.getLogger(__name__)


class AccessReviewEventPublisher:
    """
    Publisher for access review audit events.

    Publishing is best-effort: a missing or failing event bus is logged and
    reported as False, never raised to the caller.
    """

    def __init__(self, nats_client=None, source: str = "access_review_service"):
        self.nats_client = nats_client
        self.source = source

    async def publish_event(self, event: AccessReviewAuditEvent) -> bool:
        """
        Publish an audit event to NATS.

        Args:
            event: The audit event envelope

        Returns:
            True if published successfully, False otherwise
        """
        subject = event.event_type.value
        if not self.nats_client:
            logger.debug(f"NATS client not configured, skipping publish: {subject}")
            return False

        try:
            payload = event.to_payload()
            payload["source"] = self.source
            await self.nats_client.publish(subject, payload)
            logger.debug(f"Published event: {subject} for campaign {event.campaign_id}")
            return True

        except Exception as e:
            logger.error(f"Failed to publish event {subject}: {e}")
            return False
