"""
Unit Tests for the Access Review Decision Ledger

Item lookup, decision validation, manual decisions, the completeness
check and derived statistics.
"""

import pytest

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from microservices.access_review_service.decision_ledger import (
    apply_item_decision,
    build_decision,
    campaign_stats,
    ensure_editable,
    find_incomplete_items,
    find_item,
    validate_decision,
)
from microservices.access_review_service.protocols import (
    CampaignNotFoundError,
    CampaignValidationError,
    InvalidCampaignStateError,
)
from tests.contracts.access_review.data_contract import (
    CampaignStatus,
    DataClassification,
    DecisionReasonCode,
    DecisionRequest,
    DecisionType,
    RequestedChange,
    SubjectStatus,
)


class TestEnsureEditable:
    """DRAFT and IN_REVIEW behave as one editable state"""

    @pytest.mark.parametrize("status", [CampaignStatus.DRAFT, CampaignStatus.IN_REVIEW])
    def test_editable_statuses(self, factory, status):
        ensure_editable(factory.make_campaign(status=status))

    @pytest.mark.parametrize("status", [CampaignStatus.SUBMITTED, CampaignStatus.COMPLETED])
    def test_locked_statuses(self, factory, status):
        with pytest.raises(InvalidCampaignStateError) as exc_info:
            ensure_editable(factory.make_campaign(status=status), "update")

        assert exc_info.value.current_status == status
        assert exc_info.value.error_code == "INVALID_STATUS"


class TestFindItem:
    """Tests for item lookup"""

    def test_finds_item(self, draft_campaign):
        subject = draft_campaign.subjects[0]
        item = subject.items[1]

        found_subject, found_item = find_item(draft_campaign, subject.subject_id, item.item_id)

        assert found_subject is subject
        assert found_item is item

    def test_unknown_subject(self, draft_campaign):
        with pytest.raises(CampaignNotFoundError, match="Subject not found"):
            find_item(draft_campaign, "sub_missing", "itm_missing")

    def test_unknown_item(self, draft_campaign):
        subject_id = draft_campaign.subjects[0].subject_id
        with pytest.raises(CampaignNotFoundError, match="Item not found"):
            find_item(draft_campaign, subject_id, "itm_missing")


class TestValidateDecision:
    """Decision payload rules"""

    def test_approve_needs_nothing(self):
        validate_decision(DecisionRequest(decision_type=DecisionType.APPROVE))

    @pytest.mark.parametrize("decision_type", [DecisionType.REVOKE, DecisionType.MODIFY])
    def test_comments_required(self, decision_type):
        request = DecisionRequest(
            decision_type=decision_type,
            comments="   ",
            requested_change=RequestedChange(new_role_name="Viewer"),
        )
        with pytest.raises(CampaignValidationError) as exc_info:
            validate_decision(request)

        assert exc_info.value.field == "decision"
        assert "Comments are required" in exc_info.value.errors[0]

    def test_modify_requires_requested_change(self):
        request = DecisionRequest(decision_type=DecisionType.MODIFY, comments="Downgrade")
        with pytest.raises(CampaignValidationError, match="Requested change"):
            validate_decision(request)

    def test_modify_reports_every_problem(self):
        request = DecisionRequest(decision_type=DecisionType.MODIFY)
        with pytest.raises(CampaignValidationError) as exc_info:
            validate_decision(request)

        assert len(exc_info.value.errors) == 2


class TestApplyItemDecision:
    """Manual per-item decisions"""

    def test_records_decision(self, draft_campaign, actor, now):
        # Given: A pending item
        subject = draft_campaign.subjects[0]
        item = subject.items[0]
        request = DecisionRequest(
            decision_type=DecisionType.APPROVE,
            reason_code=DecisionReasonCode.JOB_FUNCTION,
        )

        # When: Applying the decision
        apply_item_decision(draft_campaign, subject.subject_id, item.item_id, request, actor, now)

        # Then: Decision stamped and subject in progress
        assert item.decision.decision_type == DecisionType.APPROVE
        assert item.decision.reason_code == DecisionReasonCode.JOB_FUNCTION
        assert item.decision.decided_by == actor
        assert item.decision.decided_at == now
        assert subject.status == SubjectStatus.IN_PROGRESS

    def test_overrides_existing_decision(self, decided_campaign, actor, now):
        subject = decided_campaign.subjects[0]
        item = subject.items[0]
        request = DecisionRequest(decision_type=DecisionType.REVOKE, comments="Left the team")

        apply_item_decision(decided_campaign, subject.subject_id, item.item_id, request, actor, now)

        assert item.decision.decision_type == DecisionType.REVOKE
        assert item.decision.comments == "Left the team"

    def test_pending_reopens_item(self, decided_campaign, actor, now):
        subject = decided_campaign.subjects[0]
        item = subject.items[0]

        apply_item_decision(
            decided_campaign, subject.subject_id, item.item_id,
            DecisionRequest(decision_type=DecisionType.PENDING), actor, now,
        )

        assert item.decision.is_pending

    def test_rejected_when_submitted(self, factory, actor):
        campaign = factory.make_campaign(status=CampaignStatus.SUBMITTED)
        subject = campaign.subjects[0]

        with pytest.raises(InvalidCampaignStateError):
            apply_item_decision(
                campaign, subject.subject_id, subject.items[0].item_id,
                DecisionRequest(decision_type=DecisionType.APPROVE), actor,
            )

    def test_build_decision_applies_default_comment(self, actor, now):
        decision = build_decision(
            DecisionRequest(decision_type=DecisionType.APPROVE), actor, now,
            default_comments="Bulk decision applied",
        )
        assert decision.comments == "Bulk decision applied"


class TestFindIncompleteItems:
    """Completeness check before submission"""

    def test_lists_every_pending_item(self, factory):
        # Given: Two subjects, three of four items pending
        first = factory.make_subject(items=[
            factory.make_item(decision_type=DecisionType.APPROVE),
            factory.make_item(),
        ])
        second = factory.make_subject(items=[factory.make_item(), factory.make_item()])
        campaign = factory.make_campaign(subjects=[first, second])

        # When: Checking completeness
        incomplete = find_incomplete_items(campaign)

        # Then: All three pending items listed in order
        assert [entry.item_id for entry in incomplete] == [
            first.items[1].item_id,
            second.items[0].item_id,
            second.items[1].item_id,
        ]
        assert incomplete[0].message.startswith("Item 2 ")
        assert incomplete[1].subject_id == second.subject_id

    def test_fully_decided_campaign_is_complete(self, decided_campaign):
        assert find_incomplete_items(decided_campaign) == []

    def test_restricted_evidence_ignored_by_default(self, factory):
        item = factory.make_item(
            data_classification=DataClassification.RESTRICTED,
            decision_type=DecisionType.APPROVE,
        )
        campaign = factory.make_campaign(subjects=[factory.make_subject(items=[item])])

        assert find_incomplete_items(campaign) == []

    def test_restricted_evidence_required_when_enabled(self, factory):
        without_evidence = factory.make_item(
            data_classification=DataClassification.RESTRICTED,
            decision_type=DecisionType.APPROVE,
        )
        with_evidence = factory.make_item(
            data_classification=DataClassification.RESTRICTED,
            decision_type=DecisionType.APPROVE,
        )
        with_evidence.decision.evidence_link = "https://evidence.example.com/42"
        campaign = factory.make_campaign(
            subjects=[factory.make_subject(items=[without_evidence, with_evidence])]
        )

        incomplete = find_incomplete_items(campaign, require_restricted_evidence=True)

        assert [entry.item_id for entry in incomplete] == [without_evidence.item_id]
        assert "requires evidence" in incomplete[0].message


class TestCampaignStats:
    """Derived completion statistics"""

    def test_partial_progress(self, factory):
        subjects = [
            factory.make_subject(
                items=[factory.make_item(decision_type=DecisionType.APPROVE), factory.make_item()]
            ),
            factory.make_subject(
                items=[factory.make_item(decision_type=DecisionType.REVOKE)],
                status=SubjectStatus.COMPLETED,
            ),
        ]
        campaign = factory.make_campaign(subjects=subjects)

        stats = campaign_stats(campaign)

        assert stats.total_subjects == 2
        assert stats.completed_subjects == 1
        assert stats.total_items == 3
        assert stats.completed_items == 2
        assert stats.completion_percentage == 67
        assert stats.subject_completion_percentage == 50

    def test_empty_campaign(self, factory):
        stats = campaign_stats(factory.make_campaign(subjects=[]))

        assert stats.total_items == 0
        assert stats.completion_percentage == 0
        assert stats.subject_completion_percentage == 0
