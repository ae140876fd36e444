"""
Access Review Event Data Models

Audit event types and the event envelope published for every campaign
state change.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


# =============================================================================
# Event Type Definitions
# =============================================================================


class AccessReviewEventType(str, Enum):
    """
    Events published by access_review_service.

    These are the authoritative audit actions for campaign changes.
    Audit consumers should reference these when subscribing.
    """
    # Campaign lifecycle events
    CAMPAIGN_CREATED = "access_review.campaign.created"
    CAMPAIGN_UPDATED = "access_review.campaign.updated"
    CAMPAIGN_SUBMITTED = "access_review.campaign.submitted"
    CAMPAIGN_APPROVED = "access_review.campaign.approved"
    CAMPAIGN_REJECTED = "access_review.campaign.rejected"
    CAMPAIGN_REMEDIATION_UPDATED = "access_review.campaign.remediation_updated"
    CAMPAIGN_COMPLETED = "access_review.campaign.completed"
    CAMPAIGN_DELETED = "access_review.campaign.deleted"

    # Decision events
    ITEM_DECIDED = "access_review.item.decided"
    BULK_DECISION_APPLIED = "access_review.bulk_decision.applied"


class AccessReviewStreamConfig:
    """Stream configuration for access_review_service"""
    STREAM_NAME = "access-review-stream"
    SUBJECTS = ["access_review.>"]
    MAX_MESSAGES = 100000


# =============================================================================
# Event Envelope
# =============================================================================


class AccessReviewAuditEvent(BaseModel):
    """Immutable audit record of one campaign change"""
    event_id: str = Field(default_factory=lambda: f"evt_{uuid4().hex[:16]}")
    event_type: AccessReviewEventType = Field(..., description="Audit action")
    source: str = Field(default="access_review_service", description="Publishing service")
    tenant_id: str = Field(..., description="Tenant ID")
    campaign_id: str = Field(..., description="Campaign ID")
    actor: str = Field(..., description="Identity that performed the action")
    description: str = Field(..., description="Human readable summary")
    before: Optional[Dict[str, Any]] = Field(None, description="Snapshot before the change")
    after: Optional[Dict[str, Any]] = Field(None, description="Snapshot after the change")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {"frozen": True}

    def to_payload(self) -> Dict[str, Any]:
        """JSON-safe payload for the event bus"""
        return self.model_dump(mode="json")
