"""
Access Review Campaign State Machine

Pure campaign transitions. Every function takes a loaded campaign, works on
a deep copy, and returns a TransitionResult holding the new aggregate plus
the audit events it produced. The caller's campaign is never touched, so a
rejected transition leaves nothing half-applied and persistence/audit stay
at the service boundary.

    DRAFT <-> IN_REVIEW --submit--> SUBMITTED --complete--> COMPLETED
                 ^                     |   \\
                 +----- rejected ------+    +-- approved, nothing to remediate
                                            |   --> COMPLETED
                                            +-- approved, remediation pending
                                                --> SUBMITTED (remediate, complete)
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .bulk_decisions import DEFAULT_SKIPPED_ITEMS_LIMIT, apply_bulk_decision
from .decision_ledger import (
    EDITABLE_STATUSES,
    apply_item_decision as ledger_apply_item_decision,
    ensure_editable,
    find_incomplete_items,
    find_item,
)
from .events.models import AccessReviewAuditEvent, AccessReviewEventType
from .models import (
    AccessReviewCampaign,
    BulkDecisionRequest,
    BulkDecisionResult,
    CampaignApprovals,
    CampaignCreateRequest,
    CampaignStatus,
    CampaignUpdateRequest,
    CampaignWorkflow,
    CompleteRequest,
    DecisionRequest,
    EmploymentType,
    RemediationRequest,
    RemediationStatus,
    ReviewSubject,
    SecondLevelApprovalRequest,
    SecondLevelDecision,
    SubjectStatus,
    SubmitRequest,
)
from .protocols import (
    CampaignValidationError,
    InvalidCampaignStateError,
    RemediationIncompleteError,
    SecondLevelNotRequiredError,
)

logger = logging.getLogger(__name__)

# Valid state transitions
VALID_TRANSITIONS = {
    CampaignStatus.DRAFT: [CampaignStatus.IN_REVIEW, CampaignStatus.SUBMITTED],
    CampaignStatus.IN_REVIEW: [CampaignStatus.DRAFT, CampaignStatus.SUBMITTED],
    CampaignStatus.SUBMITTED: [CampaignStatus.IN_REVIEW, CampaignStatus.COMPLETED],
    CampaignStatus.COMPLETED: [],  # Terminal state
}

SETTLED_REMEDIATION = frozenset({RemediationStatus.COMPLETED, RemediationStatus.NOT_REQUIRED})

EMPLOYMENT_TYPES_REQUIRING_END_DATE = frozenset({EmploymentType.CONTRACTOR, EmploymentType.VENDOR})

# Fields that are copied straight from an update patch onto the campaign
PATCHABLE_FIELDS = (
    "name",
    "description",
    "system_name",
    "environment",
    "business_unit",
    "review_type",
    "trigger_reason",
    "period_start",
    "period_end",
    "reviewer_type",
    "assigned_reviewer_id",
    "assigned_reviewer_email",
)

REQUIRED_FIELDS = frozenset({
    "name",
    "system_name",
    "environment",
    "review_type",
    "period_start",
    "period_end",
    "reviewer_type",
})


@dataclass
class TransitionResult:
    """New aggregate and the audit events describing how it got there"""
    campaign: AccessReviewCampaign
    events: List[AccessReviewAuditEvent] = field(default_factory=list)
    bulk_result: Optional[BulkDecisionResult] = None


def can_transition(current: CampaignStatus, target: CampaignStatus) -> bool:
    return target in VALID_TRANSITIONS.get(current, [])


def _move(campaign: AccessReviewCampaign, target: CampaignStatus) -> None:
    if not can_transition(campaign.status, target):
        raise InvalidCampaignStateError(
            f"Invalid status transition: {campaign.status.value} -> {target.value}",
            campaign.status,
        )
    campaign.status = target


def _now(now: Optional[datetime]) -> datetime:
    return now or datetime.now(timezone.utc)


def snapshot(campaign: AccessReviewCampaign) -> Dict[str, Any]:
    """Lifecycle view of a campaign for audit before/after records"""
    return campaign.model_dump(
        mode="json",
        include={
            "status",
            "revision",
            "approvals",
            "workflow",
            "submitted_at",
            "approved_at",
            "completed_at",
        },
    )


def _event(
    event_type: AccessReviewEventType,
    campaign: AccessReviewCampaign,
    actor: str,
    description: str,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> AccessReviewAuditEvent:
    return AccessReviewAuditEvent(
        event_type=event_type,
        tenant_id=campaign.tenant_id,
        campaign_id=campaign.campaign_id,
        actor=actor,
        description=description,
        before=before,
        after=after,
        timestamp=_now(timestamp),
    )


# ====================
# Structural validation
# ====================


def validate_period(period_start: datetime, period_end: datetime) -> List[str]:
    if period_end <= period_start:
        return ["period_end must be after period_start"]
    return []


def validate_subjects(subjects: List[ReviewSubject]) -> List[str]:
    errors = []
    seen_subjects = set()
    seen_items = set()
    for subject in subjects:
        if subject.subject_id in seen_subjects:
            errors.append(f"Subject {subject.subject_id} appears more than once")
        seen_subjects.add(subject.subject_id)
        # Item ids are unique across the whole campaign, not just per subject
        for item in subject.items:
            if item.item_id in seen_items:
                errors.append(f"Item {item.item_id} appears more than once")
            seen_items.add(item.item_id)
        if not subject.items:
            errors.append(f"Subject {subject.subject_id} must have at least one access item")
        if subject.employment_type in EMPLOYMENT_TYPES_REQUIRING_END_DATE and subject.end_date is None:
            errors.append(
                f"Subject {subject.subject_id} is a {subject.employment_type.value} "
                f"and requires an end_date"
            )
    return errors


def _raise_if_invalid(errors: List[str], field_name: str) -> None:
    if errors:
        raise CampaignValidationError(errors[0], field=field_name, errors=errors)


# ====================
# Create / Update / Delete
# ====================


def create_campaign(
    tenant_id: str,
    request: CampaignCreateRequest,
    actor: str,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Build a new DRAFT campaign from a create request"""
    _raise_if_invalid(validate_period(request.period_start, request.period_end), "period_end")
    _raise_if_invalid(validate_subjects(request.subjects), "subjects")

    now = _now(now)
    campaign = AccessReviewCampaign(
        tenant_id=tenant_id,
        name=request.name,
        description=request.description,
        system_name=request.system_name,
        environment=request.environment,
        business_unit=request.business_unit,
        review_type=request.review_type,
        trigger_reason=request.trigger_reason,
        period_start=request.period_start,
        period_end=request.period_end,
        status=CampaignStatus.DRAFT,
        created_by=actor,
        created_by_email=request.created_by_email,
        reviewer_type=request.reviewer_type,
        assigned_reviewer_id=request.assigned_reviewer_id,
        assigned_reviewer_email=request.assigned_reviewer_email,
        subjects=[subject.model_copy(deep=True) for subject in request.subjects],
        workflow=CampaignWorkflow(due_date=request.due_date),
        created_at=now,
        updated_at=now,
    )

    event = _event(
        AccessReviewEventType.CAMPAIGN_CREATED,
        campaign,
        actor,
        f"Created access review campaign: {campaign.name}",
        after={
            "name": campaign.name,
            "system_name": campaign.system_name,
            "environment": campaign.environment.value,
            "review_type": campaign.review_type.value,
            "status": campaign.status.value,
            "subject_count": len(campaign.subjects),
        },
        timestamp=now,
    )
    return TransitionResult(campaign=campaign, events=[event])


def update_campaign(
    campaign: AccessReviewCampaign,
    request: CampaignUpdateRequest,
    actor: str,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Apply a partial update while the campaign is editable.

    Only fields explicitly set on the request are applied. The status may
    only move within the editable super-state (draft / in_review).
    """
    ensure_editable(campaign, "update")
    before = snapshot(campaign)
    updated = campaign.model_copy(deep=True)
    now = _now(now)

    provided = request.model_fields_set
    changed_fields = []

    for name in PATCHABLE_FIELDS:
        if name not in provided:
            continue
        value = getattr(request, name)
        if value is None and name in REQUIRED_FIELDS:
            raise CampaignValidationError(f"{name} cannot be cleared", field=name)
        if getattr(updated, name) != value:
            setattr(updated, name, value)
            changed_fields.append(name)

    if "period_start" in provided or "period_end" in provided:
        _raise_if_invalid(validate_period(updated.period_start, updated.period_end), "period_end")

    if "due_date" in provided and updated.workflow.due_date != request.due_date:
        updated.workflow.due_date = request.due_date
        changed_fields.append("due_date")

    if "subjects" in provided and request.subjects is not None:
        _raise_if_invalid(validate_subjects(request.subjects), "subjects")
        updated.subjects = [subject.model_copy(deep=True) for subject in request.subjects]
        changed_fields.append("subjects")

    if "status" in provided and request.status is not None and request.status != updated.status:
        if request.status not in EDITABLE_STATUSES:
            raise CampaignValidationError(
                f"Status can only be set to draft or in_review by update, "
                f"got {request.status.value}",
                field="status",
            )
        _move(updated, request.status)
        changed_fields.append("status")

    updated.updated_at = now
    event = _event(
        AccessReviewEventType.CAMPAIGN_UPDATED,
        updated,
        actor,
        f"Updated access review campaign: {', '.join(changed_fields) or 'no changes'}",
        before=before,
        after={**snapshot(updated), "changed_fields": changed_fields},
        timestamp=now,
    )
    return TransitionResult(campaign=updated, events=[event])


def delete_campaign(
    campaign: AccessReviewCampaign, actor: str, now: Optional[datetime] = None
) -> TransitionResult:
    """Check the campaign may be deleted and describe the deletion"""
    if campaign.status != CampaignStatus.DRAFT:
        raise InvalidCampaignStateError(
            f"Can only delete campaigns in draft status, campaign is {campaign.status.value}",
            campaign.status,
        )
    event = _event(
        AccessReviewEventType.CAMPAIGN_DELETED,
        campaign,
        actor,
        f"Deleted access review campaign: {campaign.name}",
        before=snapshot(campaign),
        timestamp=now,
    )
    return TransitionResult(campaign=campaign, events=[event])


# ====================
# Decisions
# ====================


def decide_item(
    campaign: AccessReviewCampaign,
    subject_id: str,
    item_id: str,
    request: DecisionRequest,
    actor: str,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Record a manual decision on one item"""
    now = _now(now)
    updated = campaign.model_copy(deep=True)
    ensure_editable(updated, "record decisions on")
    _, current = find_item(updated, subject_id, item_id)
    previous = current.decision.model_dump(mode="json")

    item = ledger_apply_item_decision(updated, subject_id, item_id, request, actor, now)
    updated.updated_at = now

    event = _event(
        AccessReviewEventType.ITEM_DECIDED,
        updated,
        actor,
        f"Recorded {request.decision_type.value} decision on item {item_id} "
        f"for subject {subject_id}",
        before={"subject_id": subject_id, "item_id": item_id, "decision": previous},
        after={
            "subject_id": subject_id,
            "item_id": item_id,
            "decision": item.decision.model_dump(mode="json"),
        },
        timestamp=now,
    )
    return TransitionResult(campaign=updated, events=[event])


def bulk_decide(
    campaign: AccessReviewCampaign,
    request: BulkDecisionRequest,
    actor: str,
    now: Optional[datetime] = None,
    skipped_items_limit: int = DEFAULT_SKIPPED_ITEMS_LIMIT,
) -> TransitionResult:
    """Apply one decision to every selected item that passes the skip rules"""
    now = _now(now)
    updated = campaign.model_copy(deep=True)
    result = apply_bulk_decision(updated, request, actor, now, skipped_items_limit)
    updated.updated_at = now

    event = _event(
        AccessReviewEventType.BULK_DECISION_APPLIED,
        updated,
        actor,
        f"Applied bulk {request.decision.decision_type.value} decision: "
        f"{result.processed} processed, {result.skipped} skipped",
        after={
            "selector": request.selector.model_dump(mode="json"),
            "decision_type": request.decision.decision_type.value,
            "skip_high_risk": request.skip_high_risk is not False,
            "processed": result.processed,
            "skipped": result.skipped,
        },
        timestamp=now,
    )
    return TransitionResult(campaign=updated, events=[event], bulk_result=result)


# ====================
# Submit / Approve / Remediate / Complete
# ====================


def submit(
    campaign: AccessReviewCampaign,
    request: SubmitRequest,
    actor: str,
    now: Optional[datetime] = None,
    require_restricted_evidence: bool = False,
) -> TransitionResult:
    """
    Submit a fully decided campaign.

    Every item must carry a non-pending decision; the failure lists every
    offending item. Second-level approval becomes required when any item
    grants admin or super_admin access.
    """
    if campaign.status not in EDITABLE_STATUSES:
        raise InvalidCampaignStateError(
            "Can only submit campaigns in draft or in_review status",
            campaign.status,
        )
    if not request.reviewer_attestation:
        raise CampaignValidationError(
            "Reviewer attestation is required to submit", field="reviewer_attestation"
        )
    if not campaign.subjects:
        raise CampaignValidationError("Campaign must have at least one subject", field="subjects")

    incomplete = find_incomplete_items(campaign, require_restricted_evidence)
    if incomplete:
        item_ids = list(dict.fromkeys(entry.item_id for entry in incomplete))
        raise CampaignValidationError(
            f"Campaign has {len(item_ids)} incomplete items",
            field="subjects",
            errors=[entry.message for entry in incomplete],
            item_ids=item_ids,
        )

    now = _now(now)
    before = snapshot(campaign)
    updated = campaign.model_copy(deep=True)

    for subject in updated.subjects:
        subject.status = SubjectStatus.COMPLETED
        subject.reviewed_at = now
        subject.reviewed_by = actor

    if updated.approvals is not None:
        # Resubmission after a rejection keeps the earlier round for audit
        updated.approval_history.append(updated.approvals)

    updated.approvals = CampaignApprovals(
        reviewer_name=request.reviewer_name,
        reviewer_email=request.reviewer_email,
        reviewer_attestation=True,
        reviewer_attested_at=now,
        second_level_required=updated.has_privileged_access,
    )
    if updated.submitted_at is None:
        updated.submitted_at = now
    _move(updated, CampaignStatus.SUBMITTED)
    updated.updated_at = now

    event = _event(
        AccessReviewEventType.CAMPAIGN_SUBMITTED,
        updated,
        actor,
        f"Submitted access review campaign: {updated.name}",
        before=before,
        after=snapshot(updated),
        timestamp=now,
    )
    return TransitionResult(campaign=updated, events=[event])


def second_level_approve(
    campaign: AccessReviewCampaign,
    request: SecondLevelApprovalRequest,
    actor: str,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Record the second-level decision on a submitted campaign.

    Approval completes the campaign unless some item was revoked or
    modified, in which case it stays submitted with remediation pending.
    Rejection sends it back to in_review.
    """
    if campaign.status != CampaignStatus.SUBMITTED:
        raise InvalidCampaignStateError(
            "Can only approve campaigns in submitted status", campaign.status
        )
    if not campaign.second_level_required:
        raise SecondLevelNotRequiredError(
            "Second-level approval is not required for this campaign"
        )
    if campaign.approvals.second_decision is not None:
        raise InvalidCampaignStateError(
            f"Second-level decision already recorded: {campaign.approvals.second_decision.value}",
            campaign.status,
        )

    now = _now(now)
    before = snapshot(campaign)
    updated = campaign.model_copy(deep=True)

    approvals = updated.approvals
    approvals.second_approver_name = request.approver_name
    approvals.second_approver_email = request.approver_email
    approvals.second_decision = request.decision
    approvals.second_decision_notes = request.notes
    approvals.second_decided_at = now
    approvals.second_decided_by = actor

    events = []
    if request.decision == SecondLevelDecision.APPROVED:
        if updated.approved_at is None:
            updated.approved_at = now
        if updated.needs_remediation:
            updated.workflow.remediation_status = RemediationStatus.PENDING
            description = "Second-level approval granted; remediation pending"
        else:
            _move(updated, CampaignStatus.COMPLETED)
            updated.completed_at = now
            description = "Second-level approval granted; no remediation needed"
        updated.updated_at = now
        events.append(_event(
            AccessReviewEventType.CAMPAIGN_APPROVED,
            updated,
            actor,
            description,
            before=before,
            after=snapshot(updated),
            timestamp=now,
        ))
        if updated.status == CampaignStatus.COMPLETED:
            events.append(_event(
                AccessReviewEventType.CAMPAIGN_COMPLETED,
                updated,
                actor,
                f"Completed access review campaign: {updated.name}",
                after=snapshot(updated),
                timestamp=now,
            ))
    else:
        _move(updated, CampaignStatus.IN_REVIEW)
        updated.updated_at = now
        events.append(_event(
            AccessReviewEventType.CAMPAIGN_REJECTED,
            updated,
            actor,
            "Second-level approval rejected; campaign returned to review",
            before=before,
            after=snapshot(updated),
            timestamp=now,
        ))

    return TransitionResult(campaign=updated, events=events)


def remediate(
    campaign: AccessReviewCampaign,
    request: RemediationRequest,
    actor: str,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """Track remediation of an approved campaign"""
    if campaign.status != CampaignStatus.SUBMITTED or not campaign.second_level_approved:
        raise InvalidCampaignStateError(
            "Remediation can only be tracked on submitted campaigns with an approved "
            "second-level decision",
            campaign.status,
        )

    now = _now(now)
    before = snapshot(campaign)
    updated = campaign.model_copy(deep=True)

    workflow = updated.workflow
    workflow.remediation_ticket_created = True
    workflow.remediation_ticket_id = request.remediation_ticket_id
    workflow.remediation_status = request.remediation_status
    if (
        request.remediation_status == RemediationStatus.COMPLETED
        and workflow.remediation_completed_at is None
    ):
        workflow.remediation_completed_at = now
    updated.updated_at = now

    event = _event(
        AccessReviewEventType.CAMPAIGN_REMEDIATION_UPDATED,
        updated,
        actor,
        f"Remediation {request.remediation_status.value} "
        f"(ticket {request.remediation_ticket_id})",
        before=before,
        after={**snapshot(updated), "notes": request.notes},
        timestamp=now,
    )
    return TransitionResult(campaign=updated, events=[event])


def complete(
    campaign: AccessReviewCampaign,
    request: CompleteRequest,
    actor: str,
    now: Optional[datetime] = None,
) -> TransitionResult:
    """
    Close out a submitted campaign.

    Requires an approved second-level decision when one is required, and
    any remediation to be completed or not required.
    """
    if campaign.status != CampaignStatus.SUBMITTED:
        raise InvalidCampaignStateError(
            "Can only complete campaigns in submitted status", campaign.status
        )
    if campaign.second_level_required and not campaign.second_level_approved:
        raise InvalidCampaignStateError(
            "Second-level approval is required before completion", campaign.status
        )
    remediation_status = campaign.workflow.remediation_status
    if remediation_status is not None and remediation_status not in SETTLED_REMEDIATION:
        raise RemediationIncompleteError(
            f"Remediation must be completed before closing the campaign "
            f"(status: {remediation_status.value})",
            remediation_status,
        )

    now = _now(now)
    before = snapshot(campaign)
    updated = campaign.model_copy(deep=True)

    _move(updated, CampaignStatus.COMPLETED)
    updated.completed_at = now
    updated.workflow.verified_by = request.verified_by
    updated.workflow.verified_at = now
    updated.updated_at = now

    event = _event(
        AccessReviewEventType.CAMPAIGN_COMPLETED,
        updated,
        actor,
        f"Completed access review campaign: {updated.name}",
        before=before,
        after={**snapshot(updated), "notes": request.notes},
        timestamp=now,
    )
    return TransitionResult(campaign=updated, events=[event])


__all__ = [
    "VALID_TRANSITIONS",
    "TransitionResult",
    "can_transition",
    "snapshot",
    "validate_period",
    "validate_subjects",
    "create_campaign",
    "update_campaign",
    "delete_campaign",
    "decide_item",
    "bulk_decide",
    "submit",
    "second_level_approve",
    "remediate",
    "complete",
]
