"""
Access Review Service Business Logic

Campaign lifecycle, per-item and bulk decisioning, second-level approval,
remediation tracking and risk suggestions.

Every mutating operation follows the same shape: load the aggregate,
run a pure transition from state_machine, persist the new aggregate
against the revision that was loaded, then hand the transition's audit
events to the audit sink. Audit delivery is best-effort and never undoes
a persisted change.
"""

import logging
from typing import List, Optional, Tuple

from core.config import AccessReviewConfig
from . import state_machine
from .decision_ledger import campaign_stats
from .events.models import AccessReviewAuditEvent
from .models import (
    AccessReviewCampaign,
    BulkDecisionRequest,
    BulkDecisionResult,
    CampaignCreateRequest,
    CampaignQueryRequest,
    CampaignStats,
    CampaignUpdateRequest,
    CompleteRequest,
    DecisionRequest,
    RemediationRequest,
    SecondLevelApprovalRequest,
    SubmitRequest,
    SuggestionsResponse,
)
from .protocols import (
    AccessReviewRepositoryProtocol,
    AccessReviewServiceError,
    AuditSinkProtocol,
    CampaignNotFoundError,
)
from .risk_scoring import generate_suggestions

logger = logging.getLogger(__name__)


class AccessReviewService:
    """Access review service business logic layer"""

    def __init__(
        self,
        repository: AccessReviewRepositoryProtocol,
        audit_sink: Optional[AuditSinkProtocol] = None,
        config: Optional[AccessReviewConfig] = None,
    ):
        self.repository = repository
        self.audit_sink = audit_sink
        self.config = config or AccessReviewConfig()

    # ====================
    # Queries
    # ====================

    async def get_campaign(self, tenant_id: str, campaign_id: str) -> AccessReviewCampaign:
        """Get campaign by tenant and ID"""
        campaign = await self.repository.get_campaign(tenant_id, campaign_id)
        if not campaign:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        return campaign

    async def list_campaigns(
        self, tenant_id: str, query: Optional[CampaignQueryRequest] = None
    ) -> Tuple[List[AccessReviewCampaign], int]:
        """List campaigns with filters"""
        return await self.repository.list_campaigns(tenant_id, query or CampaignQueryRequest())

    async def get_campaign_stats(self, tenant_id: str, campaign_id: str) -> CampaignStats:
        """Completion statistics for a campaign"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        return campaign_stats(campaign)

    async def get_suggestions(self, tenant_id: str, campaign_id: str) -> SuggestionsResponse:
        """Risk-scored suggestions for every item, highest risk first"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        return generate_suggestions(
            campaign, high_risk_threshold=self.config.high_risk_threshold
        )

    # ====================
    # Campaign CRUD
    # ====================

    async def create_campaign(
        self,
        tenant_id: str,
        request: CampaignCreateRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Create a new campaign in draft status"""
        result = state_machine.create_campaign(tenant_id, request, actor)
        campaign = await self.repository.save_campaign(result.campaign)

        await self._record_events(result.events)
        logger.info(f"Access review campaign created: {campaign.campaign_id}")
        return campaign

    async def update_campaign(
        self,
        tenant_id: str,
        campaign_id: str,
        request: CampaignUpdateRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Update campaign metadata/subjects while draft or in review"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "update", campaign,
            lambda: state_machine.update_campaign(campaign, request, actor),
        )
        return await self._commit(campaign, result)

    async def delete_campaign(self, tenant_id: str, campaign_id: str, actor: str) -> bool:
        """Delete a draft campaign"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "delete", campaign,
            lambda: state_machine.delete_campaign(campaign, actor),
        )
        await self.repository.delete_campaign(tenant_id, campaign_id, campaign.revision)

        await self._record_events(result.events)
        logger.info(f"Access review campaign deleted: {campaign_id}")
        return True

    # ====================
    # Decisions
    # ====================

    async def apply_item_decision(
        self,
        tenant_id: str,
        campaign_id: str,
        subject_id: str,
        item_id: str,
        request: DecisionRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Record a manual decision on a single item"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "decide item", campaign,
            lambda: state_machine.decide_item(campaign, subject_id, item_id, request, actor),
        )
        return await self._commit(campaign, result)

    async def apply_bulk_decision(
        self,
        tenant_id: str,
        campaign_id: str,
        request: BulkDecisionRequest,
        actor: str,
    ) -> BulkDecisionResult:
        """
        Apply one decision to the items picked by the request's selector.

        All per-item writes are persisted together or not at all.
        """
        if request.skip_high_risk is None:
            request = request.model_copy(
                update={"skip_high_risk": self.config.default_skip_high_risk}
            )
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "bulk decide", campaign,
            lambda: state_machine.bulk_decide(
                campaign, request, actor,
                skipped_items_limit=self.config.skipped_items_limit,
            ),
        )
        await self._commit(campaign, result)
        return result.bulk_result

    # ====================
    # Lifecycle
    # ====================

    async def submit_campaign(
        self,
        tenant_id: str,
        campaign_id: str,
        request: SubmitRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Submit a fully decided campaign for approval"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "submit", campaign,
            lambda: state_machine.submit(
                campaign, request, actor,
                require_restricted_evidence=self.config.require_restricted_evidence,
            ),
        )
        updated = await self._commit(campaign, result)
        logger.info(
            f"Access review campaign submitted: {campaign_id} "
            f"(second level required: {updated.second_level_required})"
        )
        return updated

    async def second_level_approve(
        self,
        tenant_id: str,
        campaign_id: str,
        request: SecondLevelApprovalRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Record the second-level approval decision"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "second-level approve", campaign,
            lambda: state_machine.second_level_approve(campaign, request, actor),
        )
        updated = await self._commit(campaign, result)
        logger.info(
            f"Access review campaign {campaign_id} second-level "
            f"{request.decision.value}; status now {updated.status.value}"
        )
        return updated

    async def remediate_campaign(
        self,
        tenant_id: str,
        campaign_id: str,
        request: RemediationRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Track remediation progress for an approved campaign"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "remediate", campaign,
            lambda: state_machine.remediate(campaign, request, actor),
        )
        updated = await self._commit(campaign, result)
        logger.info(
            f"Access review campaign {campaign_id} remediation "
            f"{request.remediation_status.value}"
        )
        return updated

    async def complete_campaign(
        self,
        tenant_id: str,
        campaign_id: str,
        request: CompleteRequest,
        actor: str,
    ) -> AccessReviewCampaign:
        """Mark a submitted campaign as completed"""
        campaign = await self.get_campaign(tenant_id, campaign_id)
        result = self._guarded(
            "complete", campaign,
            lambda: state_machine.complete(campaign, request, actor),
        )
        updated = await self._commit(campaign, result)
        logger.info(f"Access review campaign completed: {campaign_id}")
        return updated

    # ====================
    # Helpers
    # ====================

    def _guarded(self, action: str, campaign: AccessReviewCampaign, transition):
        """Run a pure transition, logging rejections before re-raising"""
        try:
            return transition()
        except AccessReviewServiceError as e:
            logger.warning(
                f"Rejected {action} on campaign {campaign.campaign_id} "
                f"({campaign.status.value}): [{e.error_code}] {e}"
            )
            raise

    async def _commit(
        self, loaded: AccessReviewCampaign, result: state_machine.TransitionResult
    ) -> AccessReviewCampaign:
        """Persist against the loaded revision, then publish the audit trail"""
        saved = await self.repository.update_campaign(result.campaign, loaded.revision)
        await self._record_events(result.events)
        return saved

    # ====================
    # Event Publishing
    # ====================

    async def _record_events(self, events: List[AccessReviewAuditEvent]) -> None:
        """Hand audit events to the sink; failures are logged, never raised"""
        if not self.audit_sink:
            logger.debug(f"Audit sink not configured, skipping {len(events)} events")
            return

        for event in events:
            try:
                published = await self.audit_sink.publish_event(event)
                if not published:
                    logger.warning(
                        f"Audit event {event.event_type.value} not recorded "
                        f"for campaign {event.campaign_id}"
                    )
            except Exception as e:
                logger.error(f"Failed to publish audit event {event.event_type.value}: {e}")


__all__ = ["AccessReviewService"]
