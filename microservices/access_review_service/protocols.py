"""
Access Review Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.
"""

from typing import List, Optional, Protocol, Tuple

from .events.models import AccessReviewAuditEvent
from .models import (
    AccessReviewCampaign,
    CampaignQueryRequest,
    CampaignStatus,
    RemediationStatus,
)


# ====================
# Repository Protocol
# ====================


class AccessReviewRepositoryProtocol(Protocol):
    """
    Protocol for the campaign document store.

    The whole aggregate (campaign, subjects, items) is loaded and written as
    one unit. Writes carry the revision the caller loaded; a stale revision
    must raise ConcurrencyConflictError instead of overwriting.
    """

    async def initialize(self) -> None:
        """Initialize repository connection"""
        ...

    async def close(self) -> None:
        """Close repository connection"""
        ...

    async def health_check(self) -> bool:
        """Check repository health"""
        ...

    async def save_campaign(self, campaign: AccessReviewCampaign) -> AccessReviewCampaign:
        """Insert a new campaign, returned at revision 1"""
        ...

    async def get_campaign(
        self, tenant_id: str, campaign_id: str
    ) -> Optional[AccessReviewCampaign]:
        """Get campaign by tenant and ID"""
        ...

    async def update_campaign(
        self, campaign: AccessReviewCampaign, expected_revision: int
    ) -> AccessReviewCampaign:
        """Replace the stored aggregate if its revision still matches"""
        ...

    async def delete_campaign(
        self, tenant_id: str, campaign_id: str, expected_revision: int
    ) -> bool:
        """Hard delete a campaign if its revision still matches"""
        ...

    async def list_campaigns(
        self, tenant_id: str, query: CampaignQueryRequest
    ) -> Tuple[List[AccessReviewCampaign], int]:
        """List campaigns with filters"""
        ...


# ====================
# Audit Sink Protocol
# ====================


class AuditSinkProtocol(Protocol):
    """Append-only audit sink; failures never roll back the operation"""

    async def publish_event(self, event: AccessReviewAuditEvent) -> bool:
        """Record an audit event, returning False if it did not land"""
        ...


# ====================
# Custom Exceptions
# ====================


class AccessReviewServiceError(Exception):
    """Base exception for access review service errors"""

    error_code = "ACCESS_REVIEW_ERROR"


class CampaignNotFoundError(AccessReviewServiceError):
    """Raised when a campaign, subject or item is not found"""

    error_code = "NOT_FOUND"


class InvalidCampaignStateError(AccessReviewServiceError):
    """Raised when campaign is in invalid state for operation"""

    error_code = "INVALID_STATUS"

    def __init__(self, message: str, current_status: Optional[CampaignStatus] = None):
        super().__init__(message)
        self.current_status = current_status


class CampaignValidationError(AccessReviewServiceError):
    """Raised when campaign validation fails"""

    error_code = "VALIDATION_ERROR"

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        errors: Optional[List[str]] = None,
        item_ids: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.field = field
        self.errors = errors or []
        self.item_ids = item_ids or []


class SecondLevelNotRequiredError(AccessReviewServiceError):
    """Raised when second-level approval is attempted on a campaign that does not need it"""

    error_code = "NOT_REQUIRED"


class RemediationIncompleteError(AccessReviewServiceError):
    """Raised when completion is blocked by open remediation"""

    error_code = "REMEDIATION_INCOMPLETE"

    def __init__(
        self, message: str, remediation_status: Optional[RemediationStatus] = None
    ):
        super().__init__(message)
        self.remediation_status = remediation_status


class ConcurrencyConflictError(AccessReviewServiceError):
    """Raised when a write was made against a stale campaign revision"""

    error_code = "CONFLICT"

    def __init__(
        self,
        message: str,
        expected_revision: Optional[int] = None,
        actual_revision: Optional[int] = None,
    ):
        super().__init__(message)
        self.expected_revision = expected_revision
        self.actual_revision = actual_revision


__all__ = [
    "AccessReviewRepositoryProtocol",
    "AuditSinkProtocol",
    "AccessReviewServiceError",
    "CampaignNotFoundError",
    "InvalidCampaignStateError",
    "CampaignValidationError",
    "SecondLevelNotRequiredError",
    "RemediationIncompleteError",
    "ConcurrencyConflictError",
]
