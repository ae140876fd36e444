"""
Access Review Decision Ledger

Per-item decision records: lookup, validation, application and the
completeness check run before submission.

Functions here mutate the campaign they are given. Callers pass a working
copy (see state_machine) so a failed operation never leaves a half-applied
aggregate behind.
"""

import logging
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Tuple

from .models import (
    AccessReviewCampaign,
    AccessReviewItem,
    CampaignStats,
    CampaignStatus,
    DataClassification,
    DecisionRequest,
    DecisionType,
    ItemDecision,
    REMEDIATION_DECISIONS,
    ReviewSubject,
    SubjectStatus,
)
from .protocols import (
    CampaignNotFoundError,
    CampaignValidationError,
    InvalidCampaignStateError,
)

logger = logging.getLogger(__name__)

# DRAFT and IN_REVIEW are one editable super-state
EDITABLE_STATUSES = frozenset({CampaignStatus.DRAFT, CampaignStatus.IN_REVIEW})

BULK_DECISION_COMMENT = "Bulk decision applied"


class IncompleteItem(NamedTuple):
    subject_id: str
    item_id: str
    message: str


def ensure_editable(campaign: AccessReviewCampaign, action: str = "modify") -> None:
    """Raise unless the campaign is still open for edits and decisions"""
    if campaign.status not in EDITABLE_STATUSES:
        raise InvalidCampaignStateError(
            f"Cannot {action} campaign in {campaign.status.value} status; "
            f"only draft or in_review campaigns can be changed",
            campaign.status,
        )


# ====================
# Lookup
# ====================


def find_subject(campaign: AccessReviewCampaign, subject_id: str) -> ReviewSubject:
    for subject in campaign.subjects:
        if subject.subject_id == subject_id:
            return subject
    raise CampaignNotFoundError(
        f"Subject not found: {subject_id} in campaign {campaign.campaign_id}"
    )


def find_item(
    campaign: AccessReviewCampaign, subject_id: str, item_id: str
) -> Tuple[ReviewSubject, AccessReviewItem]:
    subject = find_subject(campaign, subject_id)
    for item in subject.items:
        if item.item_id == item_id:
            return subject, item
    raise CampaignNotFoundError(
        f"Item not found: {item_id} for subject {subject_id}"
    )


# ====================
# Decisions
# ====================


def validate_decision(request: DecisionRequest, field: str = "decision") -> None:
    """
    Enforce the rules a decision payload must satisfy before it is recorded.

    Revoke and modify need a comment; modify also needs the requested change.
    """
    errors = []
    if request.decision_type in REMEDIATION_DECISIONS and not (request.comments or "").strip():
        errors.append(
            f"Comments are required for {request.decision_type.value} decisions"
        )
    if request.decision_type == DecisionType.MODIFY and request.requested_change is None:
        errors.append("Requested change is required for modify decisions")

    if errors:
        raise CampaignValidationError(errors[0], field=field, errors=errors)


def build_decision(
    request: DecisionRequest,
    actor: str,
    decided_at: Optional[datetime] = None,
    default_comments: Optional[str] = None,
) -> ItemDecision:
    """Stamp a decision payload with the acting identity and time"""
    comments = request.comments if request.comments else default_comments
    return ItemDecision(
        decision_type=request.decision_type,
        reason_code=request.reason_code,
        comments=comments,
        effective_date=request.effective_date,
        requested_change=request.requested_change,
        evidence_provided=request.evidence_provided,
        evidence_link=request.evidence_link,
        decided_by=actor,
        decided_at=decided_at or datetime.now(timezone.utc),
    )


def record_decision(
    subject: ReviewSubject, item: AccessReviewItem, decision: ItemDecision
) -> None:
    """Overwrite the item's active decision and move the subject into progress"""
    item.decision = decision
    if subject.status == SubjectStatus.PENDING:
        subject.status = SubjectStatus.IN_PROGRESS


def apply_item_decision(
    campaign: AccessReviewCampaign,
    subject_id: str,
    item_id: str,
    request: DecisionRequest,
    actor: str,
    decided_at: Optional[datetime] = None,
) -> AccessReviewItem:
    """Manual per-item decision; overrides whatever decision the item carried"""
    ensure_editable(campaign, "record decisions on")
    subject, item = find_item(campaign, subject_id, item_id)
    validate_decision(request)

    record_decision(subject, item, build_decision(request, actor, decided_at))
    logger.debug(
        f"Recorded {request.decision_type.value} decision on item {item_id} "
        f"of campaign {campaign.campaign_id}"
    )
    return item


# ====================
# Completeness
# ====================


def find_incomplete_items(
    campaign: AccessReviewCampaign, require_restricted_evidence: bool = False
) -> List[IncompleteItem]:
    """
    Every item blocking submission, in subject then item order.

    An item blocks when its decision is still pending. With
    require_restricted_evidence, restricted items also block until their
    decision carries an evidence flag or link.
    """
    incomplete = []
    position = 0
    for subject, item in campaign.iter_items():
        position += 1
        if item.decision.is_pending:
            incomplete.append(IncompleteItem(
                subject.subject_id,
                item.item_id,
                f"Item {position} ({item.item_id}) is missing a decision",
            ))
        if (
            require_restricted_evidence
            and item.data_classification == DataClassification.RESTRICTED
            and not (item.decision.evidence_provided or item.decision.evidence_link)
        ):
            incomplete.append(IncompleteItem(
                subject.subject_id,
                item.item_id,
                f"Item {position} ({item.item_id}) requires evidence for restricted classification",
            ))
    return incomplete


def campaign_stats(campaign: AccessReviewCampaign) -> CampaignStats:
    """Completion statistics derived from the aggregate"""
    total_subjects = len(campaign.subjects)
    completed_subjects = sum(
        1 for s in campaign.subjects if s.status == SubjectStatus.COMPLETED
    )
    items = [item for _, item in campaign.iter_items()]
    completed_items = sum(1 for item in items if item.is_decided)

    def percentage(part: int, whole: int) -> int:
        return round(part * 100 / whole) if whole else 0

    return CampaignStats(
        total_subjects=total_subjects,
        completed_subjects=completed_subjects,
        total_items=len(items),
        completed_items=completed_items,
        completion_percentage=percentage(completed_items, len(items)),
        subject_completion_percentage=percentage(completed_subjects, total_subjects),
    )


__all__ = [
    "EDITABLE_STATUSES",
    "BULK_DECISION_COMMENT",
    "IncompleteItem",
    "ensure_editable",
    "find_subject",
    "find_item",
    "validate_decision",
    "build_decision",
    "record_decision",
    "apply_item_decision",
    "find_incomplete_items",
    "campaign_stats",
]
