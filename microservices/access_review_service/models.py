"""
Access Review Service Data Models

Canonical data structures for access review campaigns.

A campaign is one document-shaped aggregate: the campaign owns its subjects,
each subject owns its items, and each item carries at most one active decision.
Nothing below the campaign is addressable on its own at the storage boundary.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Iterator, List, Literal, Optional, Tuple, Union
from uuid import uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class CampaignStatus(str, Enum):
    """Campaign lifecycle status"""
    DRAFT = "draft"
    IN_REVIEW = "in_review"
    SUBMITTED = "submitted"
    COMPLETED = "completed"


class SubjectStatus(str, Enum):
    """Review status of a single subject"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DecisionType(str, Enum):
    """Reviewer decision on one access item"""
    APPROVE = "approve"
    REVOKE = "revoke"
    MODIFY = "modify"
    ESCALATE = "escalate"
    PENDING = "pending"


class DecisionReasonCode(str, Enum):
    """Reason recorded alongside a decision"""
    JOB_FUNCTION = "job_function"
    LEAST_PRIVILEGE = "least_privilege"
    NO_LONGER_NEEDED = "no_longer_needed"
    ROLE_CHANGE = "role_change"
    TERMINATION = "termination"
    SOD_CONFLICT = "sod_conflict"
    EXCESSIVE_ACCESS = "excessive_access"
    OTHER = "other"


class PrivilegeLevel(str, Enum):
    """Privilege carried by an entitlement"""
    READ_ONLY = "read_only"
    STANDARD = "standard"
    ELEVATED = "elevated"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class DataClassification(str, Enum):
    """Sensitivity of the data an entitlement reaches"""
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"


class EmploymentType(str, Enum):
    EMPLOYEE = "employee"
    CONTRACTOR = "contractor"
    VENDOR = "vendor"


class EnvironmentType(str, Enum):
    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"
    TEST = "test"


class EntitlementType(str, Enum):
    ROLE = "role"
    GROUP = "group"
    PERMISSION = "permission"
    LICENSE = "license"
    ACCOUNT = "account"


class GrantMethod(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"
    REQUEST = "request"
    INHERITED = "inherited"


class SodConcern(str, Enum):
    """Segregation-of-duties concern flag"""
    NONE = "none"
    POTENTIAL = "potential"
    CONFIRMED = "confirmed"


class ReviewType(str, Enum):
    PERIODIC = "periodic"
    EVENT_DRIVEN = "event_driven"
    TERMINATION = "termination"
    ROLE_CHANGE = "role_change"
    AD_HOC = "ad_hoc"


class ReviewerType(str, Enum):
    MANAGER = "manager"
    APPLICATION_OWNER = "application_owner"
    SECURITY = "security"
    COMPLIANCE = "compliance"


class RemediationStatus(str, Enum):
    """Progress of executing revoke/modify decisions after approval"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    NOT_REQUIRED = "not_required"


class SecondLevelDecision(str, Enum):
    APPROVED = "approved"
    REJECTED = "rejected"


class Confidence(str, Enum):
    """Confidence of a risk suggestion, ordered high > medium > low"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIVILEGED_LEVELS = frozenset({PrivilegeLevel.ADMIN, PrivilegeLevel.SUPER_ADMIN})
REMEDIATION_DECISIONS = frozenset({DecisionType.REVOKE, DecisionType.MODIFY})


# =============================================================================
# BASE MODELS
# =============================================================================

class BaseContract(BaseModel):
    """Base model for all access review models"""

    model_config = {
        "from_attributes": True,
    }


# =============================================================================
# DECISION / ITEM / SUBJECT
# =============================================================================

class RequestedChange(BaseContract):
    """Change requested by a MODIFY decision"""
    new_role_name: Optional[str] = Field(None, max_length=200)
    new_permissions: List[str] = Field(default_factory=list)
    new_scope: Optional[str] = Field(None, max_length=200)
    expiration_date: Optional[datetime] = None
    notes: Optional[str] = Field(None, max_length=500)


class ItemDecision(BaseContract):
    """Active decision on an access item"""
    decision_type: DecisionType = DecisionType.PENDING
    reason_code: Optional[DecisionReasonCode] = None
    comments: Optional[str] = Field(None, max_length=2000)
    effective_date: Optional[datetime] = None
    requested_change: Optional[RequestedChange] = None
    evidence_provided: bool = False
    evidence_link: Optional[str] = Field(None, max_length=500)
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None

    @property
    def is_pending(self) -> bool:
        return self.decision_type == DecisionType.PENDING


class AccessReviewItem(BaseContract):
    """One access entitlement to certify"""
    item_id: str = Field(default_factory=lambda: f"itm_{uuid4().hex[:16]}")
    application: str = Field(..., min_length=1, max_length=200)
    environment: EnvironmentType
    role_name: str = Field(..., min_length=1, max_length=200)
    role_description: Optional[str] = Field(None, max_length=500)
    entitlement_name: Optional[str] = Field(None, max_length=200)
    entitlement_type: EntitlementType
    privilege_level: PrivilegeLevel
    scope: Optional[str] = Field(None, max_length=200)
    granted_date: Optional[datetime] = None
    granted_by: Optional[str] = None
    grant_method: GrantMethod
    last_used_date: Optional[datetime] = None
    mfa_enabled: Optional[bool] = None
    justification_on_file: Optional[str] = Field(None, max_length=1000)
    ticket_id: Optional[str] = Field(None, max_length=100)
    data_classification: DataClassification
    regulated_flags: List[str] = Field(default_factory=list)
    sod_concern: Optional[SodConcern] = None
    compensating_controls: Optional[str] = Field(None, max_length=1000)
    decision: ItemDecision = Field(default_factory=ItemDecision)

    @property
    def is_privileged(self) -> bool:
        return self.privilege_level in PRIVILEGED_LEVELS

    @property
    def is_high_risk(self) -> bool:
        """High-risk items are never decided in bulk unless explicitly allowed"""
        return self.is_privileged or self.data_classification == DataClassification.RESTRICTED

    @property
    def is_decided(self) -> bool:
        return not self.decision.is_pending


class ReviewSubject(BaseContract):
    """A reviewed identity and the access items it holds"""
    subject_id: str = Field(..., min_length=1)
    full_name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., max_length=254)
    employee_id: Optional[str] = Field(None, max_length=50)
    job_title: Optional[str] = Field(None, max_length=200)
    department: Optional[str] = Field(None, max_length=200)
    manager_name: Optional[str] = Field(None, max_length=200)
    manager_email: Optional[str] = Field(None, max_length=254)
    location: Optional[str] = Field(None, max_length=200)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    employment_type: EmploymentType
    status: SubjectStatus = SubjectStatus.PENDING
    items: List[AccessReviewItem] = Field(default_factory=list)
    reviewed_at: Optional[datetime] = None
    reviewed_by: Optional[str] = None


# =============================================================================
# APPROVALS / WORKFLOW
# =============================================================================

class CampaignApprovals(BaseContract):
    """Submission attestation and second-level approval record"""
    reviewer_name: str = Field(..., min_length=1, max_length=200)
    reviewer_email: str = Field(..., max_length=254)
    reviewer_attestation: bool = False
    reviewer_attested_at: Optional[datetime] = None
    second_level_required: bool = False
    second_approver_name: Optional[str] = None
    second_approver_email: Optional[str] = None
    second_decision: Optional[SecondLevelDecision] = None
    second_decision_notes: Optional[str] = Field(None, max_length=2000)
    second_decided_at: Optional[datetime] = None
    second_decided_by: Optional[str] = None


class CampaignWorkflow(BaseContract):
    """Deadlines and remediation tracking"""
    due_date: Optional[datetime] = None
    escalation_level: int = Field(default=0, ge=0)
    notifications_sent_at: List[datetime] = Field(default_factory=list)
    remediation_ticket_created: bool = False
    remediation_ticket_id: Optional[str] = Field(None, max_length=100)
    remediation_status: Optional[RemediationStatus] = None
    remediation_completed_at: Optional[datetime] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None


# =============================================================================
# CAMPAIGN
# =============================================================================

class AccessReviewCampaign(BaseContract):
    """Access review campaign aggregate"""
    campaign_id: str = Field(default_factory=lambda: f"arc_{uuid4().hex[:16]}")
    tenant_id: str
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    system_name: str = Field(..., min_length=1, max_length=200)
    environment: EnvironmentType
    business_unit: Optional[str] = Field(None, max_length=200)
    review_type: ReviewType
    trigger_reason: Optional[str] = Field(None, max_length=500)
    period_start: datetime
    period_end: datetime
    status: CampaignStatus = CampaignStatus.DRAFT
    created_by: str
    created_by_email: Optional[str] = None
    reviewer_type: ReviewerType
    assigned_reviewer_id: Optional[str] = None
    assigned_reviewer_email: Optional[str] = None
    subjects: List[ReviewSubject] = Field(default_factory=list)
    approvals: Optional[CampaignApprovals] = None
    approval_history: List[CampaignApprovals] = Field(default_factory=list)
    workflow: CampaignWorkflow = Field(default_factory=CampaignWorkflow)
    submitted_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    revision: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    def iter_items(self) -> Iterator[Tuple[ReviewSubject, AccessReviewItem]]:
        """Flattened item set in subject order, then item order"""
        for subject in self.subjects:
            for item in subject.items:
                yield subject, item

    @property
    def has_privileged_access(self) -> bool:
        return any(item.is_privileged for _, item in self.iter_items())

    @property
    def needs_remediation(self) -> bool:
        return any(
            item.decision.decision_type in REMEDIATION_DECISIONS
            for _, item in self.iter_items()
        )

    @property
    def second_level_required(self) -> bool:
        return bool(self.approvals and self.approvals.second_level_required)

    @property
    def second_level_approved(self) -> bool:
        return bool(
            self.approvals
            and self.approvals.second_decision == SecondLevelDecision.APPROVED
        )


class CampaignStats(BaseContract):
    """Derived completion statistics"""
    total_subjects: int = 0
    completed_subjects: int = 0
    total_items: int = 0
    completed_items: int = 0
    completion_percentage: int = 0
    subject_completion_percentage: int = 0


# =============================================================================
# REQUEST MODELS
# =============================================================================

class CampaignCreateRequest(BaseContract):
    """Request to create a draft campaign"""
    name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    system_name: str = Field(..., min_length=1, max_length=200)
    environment: EnvironmentType
    business_unit: Optional[str] = Field(None, max_length=200)
    review_type: ReviewType
    trigger_reason: Optional[str] = Field(None, max_length=500)
    period_start: datetime
    period_end: datetime
    due_date: Optional[datetime] = None
    reviewer_type: ReviewerType
    assigned_reviewer_id: Optional[str] = None
    assigned_reviewer_email: Optional[str] = Field(None, max_length=254)
    created_by_email: Optional[str] = Field(None, max_length=254)
    subjects: List[ReviewSubject] = Field(default_factory=list)


class CampaignUpdateRequest(BaseContract):
    """Partial update of campaign metadata and subjects; unset fields are untouched"""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)
    system_name: Optional[str] = Field(None, min_length=1, max_length=200)
    environment: Optional[EnvironmentType] = None
    business_unit: Optional[str] = Field(None, max_length=200)
    review_type: Optional[ReviewType] = None
    trigger_reason: Optional[str] = Field(None, max_length=500)
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    due_date: Optional[datetime] = None
    reviewer_type: Optional[ReviewerType] = None
    assigned_reviewer_id: Optional[str] = None
    assigned_reviewer_email: Optional[str] = Field(None, max_length=254)
    subjects: Optional[List[ReviewSubject]] = None
    status: Optional[CampaignStatus] = None


class DecisionRequest(BaseContract):
    """Decision payload for one item, or the uniform payload of a bulk decision"""
    decision_type: DecisionType
    reason_code: Optional[DecisionReasonCode] = None
    comments: Optional[str] = Field(None, max_length=2000)
    effective_date: Optional[datetime] = None
    requested_change: Optional[RequestedChange] = None
    evidence_provided: bool = False
    evidence_link: Optional[str] = Field(None, max_length=500)


class AllItemsSelector(BaseContract):
    target_type: Literal["all"] = "all"


class FilteredItemsSelector(BaseContract):
    """Matches items on every supplied field; omitted fields match anything"""
    target_type: Literal["filtered"] = "filtered"
    privilege_level: Optional[PrivilegeLevel] = None
    entitlement_type: Optional[EntitlementType] = None
    data_classification: Optional[DataClassification] = None


class SelectedItemsSelector(BaseContract):
    target_type: Literal["selected"] = "selected"
    item_ids: List[str] = Field(..., min_length=1)


BulkSelector = Annotated[
    Union[AllItemsSelector, FilteredItemsSelector, SelectedItemsSelector],
    Field(discriminator="target_type"),
]


class BulkDecisionRequest(BaseContract):
    """Apply one decision to a selected subset of items"""
    selector: BulkSelector
    decision: DecisionRequest
    skip_high_risk: Optional[bool] = None  # None: use the configured default (skip)


class SubmitRequest(BaseContract):
    """Reviewer attestation captured at submission"""
    reviewer_attestation: bool
    reviewer_name: str = Field(..., min_length=1, max_length=200)
    reviewer_email: str = Field(..., max_length=254)


class SecondLevelApprovalRequest(BaseContract):
    decision: SecondLevelDecision
    notes: Optional[str] = Field(None, max_length=2000)
    approver_name: str = Field(..., min_length=1, max_length=200)
    approver_email: str = Field(..., max_length=254)


class RemediationRequest(BaseContract):
    remediation_ticket_id: str = Field(..., min_length=1, max_length=100)
    remediation_status: RemediationStatus
    notes: Optional[str] = Field(None, max_length=2000)


class CompleteRequest(BaseContract):
    verified_by: str = Field(..., min_length=1, max_length=200)
    notes: Optional[str] = Field(None, max_length=2000)


class CampaignQueryRequest(BaseContract):
    """Campaign list filters"""
    status: Optional[CampaignStatus] = None
    system_name: Optional[str] = None
    environment: Optional[EnvironmentType] = None
    review_type: Optional[ReviewType] = None
    assigned_reviewer_id: Optional[str] = None
    period_end_from: Optional[datetime] = None
    period_end_to: Optional[datetime] = None
    search: Optional[str] = None
    sort_by: Literal["created_at", "name", "system_name", "status", "period_end"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    limit: int = Field(default=20, ge=1, le=100)
    offset: int = Field(default=0, ge=0)


# =============================================================================
# RESULT MODELS
# =============================================================================

class SkippedItem(BaseContract):
    item_id: str
    subject_id: str
    reason: str


class BulkDecisionResult(BaseContract):
    """Outcome of a bulk decision; skipped_items is capped for feedback"""
    processed: int = 0
    skipped: int = 0
    skipped_items: List[SkippedItem] = Field(default_factory=list)


class RiskSuggestion(BaseContract):
    item_id: str
    subject_id: str
    suggested_decision: DecisionType = DecisionType.APPROVE
    confidence: Confidence = Confidence.HIGH
    risk_score: int = Field(default=0, ge=0, le=100)
    reasons: List[str] = Field(default_factory=list)
    requires_manual_review: bool = False


class SuggestionSummary(BaseContract):
    total_items: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    require_manual_review: int = 0
    average_risk_score: int = 0
    high_risk_items: int = 0


class SuggestionsResponse(BaseContract):
    suggestions: List[RiskSuggestion] = Field(default_factory=list)
    summary: SuggestionSummary = Field(default_factory=SuggestionSummary)


__all__ = [
    # Enums
    "CampaignStatus",
    "SubjectStatus",
    "DecisionType",
    "DecisionReasonCode",
    "PrivilegeLevel",
    "DataClassification",
    "EmploymentType",
    "EnvironmentType",
    "EntitlementType",
    "GrantMethod",
    "SodConcern",
    "ReviewType",
    "ReviewerType",
    "RemediationStatus",
    "SecondLevelDecision",
    "Confidence",
    "PRIVILEGED_LEVELS",
    "REMEDIATION_DECISIONS",
    # Aggregate
    "RequestedChange",
    "ItemDecision",
    "AccessReviewItem",
    "ReviewSubject",
    "CampaignApprovals",
    "CampaignWorkflow",
    "AccessReviewCampaign",
    "CampaignStats",
    # Requests
    "CampaignCreateRequest",
    "CampaignUpdateRequest",
    "DecisionRequest",
    "AllItemsSelector",
    "FilteredItemsSelector",
    "SelectedItemsSelector",
    "BulkSelector",
    "BulkDecisionRequest",
    "SubmitRequest",
    "SecondLevelApprovalRequest",
    "RemediationRequest",
    "CompleteRequest",
    "CampaignQueryRequest",
    # Results
    "SkippedItem",
    "BulkDecisionResult",
    "RiskSuggestion",
    "SuggestionSummary",
    "SuggestionsResponse",
]
