"""
Access Review Service Events

Audit event models and publisher for access review service.
"""

from .models import (
    AccessReviewEventType,
    AccessReviewStreamConfig,
    AccessReviewAuditEvent,
)
from .publishers import AccessReviewEventPublisher

__all__ = [
    # Event Types
    "AccessReviewEventType",
    "AccessReviewStreamConfig",
    # Event Envelope
    "AccessReviewAuditEvent",
    # Publisher
    "AccessReviewEventPublisher",
]
