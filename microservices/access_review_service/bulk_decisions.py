"""
Access Review Bulk Decisions

Applies one decision to the items picked by a selector, walking the
flattened item set in subject order then item order. Items outside the
selector are ignored without being counted. Included items are skipped when
they are high-risk (and skip_high_risk is set) or already decided; the
first few skip reasons are returned for feedback.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from .decision_ledger import (
    BULK_DECISION_COMMENT,
    build_decision,
    ensure_editable,
    record_decision,
)
from .models import (
    AccessReviewCampaign,
    AccessReviewItem,
    AllItemsSelector,
    BulkDecisionRequest,
    BulkDecisionResult,
    BulkSelector,
    DecisionType,
    FilteredItemsSelector,
    SelectedItemsSelector,
    SkippedItem,
)
from .protocols import CampaignValidationError

logger = logging.getLogger(__name__)

DEFAULT_SKIPPED_ITEMS_LIMIT = 20

SKIP_HIGH_RISK = "High-risk item requires manual review"
SKIP_ALREADY_DECIDED = "Item already has a decision"


# ====================
# Selectors
# ====================


def selector_matches(selector: BulkSelector, item: AccessReviewItem) -> bool:
    """Whether an item falls inside the selector"""
    if isinstance(selector, AllItemsSelector):
        return True
    if isinstance(selector, SelectedItemsSelector):
        return item.item_id in selector.item_ids
    if isinstance(selector, FilteredItemsSelector):
        # Omitted filter fields match anything
        if selector.privilege_level is not None and item.privilege_level != selector.privilege_level:
            return False
        if selector.entitlement_type is not None and item.entitlement_type != selector.entitlement_type:
            return False
        if (
            selector.data_classification is not None
            and item.data_classification != selector.data_classification
        ):
            return False
        return True
    raise TypeError(f"Unsupported bulk selector: {type(selector).__name__}")


# ====================
# Processor
# ====================


def apply_bulk_decision(
    campaign: AccessReviewCampaign,
    request: BulkDecisionRequest,
    actor: str,
    decided_at: Optional[datetime] = None,
    skipped_items_limit: int = DEFAULT_SKIPPED_ITEMS_LIMIT,
) -> BulkDecisionResult:
    """Apply the request to the campaign in place and report what happened"""
    ensure_editable(campaign, "apply bulk decisions to")

    if request.decision.decision_type == DecisionType.PENDING:
        raise CampaignValidationError(
            "Bulk decisions cannot reset items to pending", field="decision.decision_type"
        )
    # Bulk payloads carry no requested change; the default comment covers
    # the comment rule for revoke and modify
    payload = request.decision
    if not (payload.comments or "").strip():
        payload = payload.model_copy(update={"comments": BULK_DECISION_COMMENT})

    decided_at = decided_at or datetime.now(timezone.utc)
    # One shared decision; every record_decision gets its own copy
    decision = build_decision(payload, actor, decided_at)

    skip_high_risk = request.skip_high_risk is not False
    result = BulkDecisionResult()
    for subject, item in campaign.iter_items():
        if not selector_matches(request.selector, item):
            continue

        reason = None
        if skip_high_risk and item.is_high_risk:
            reason = SKIP_HIGH_RISK
        elif item.is_decided:
            reason = SKIP_ALREADY_DECIDED

        if reason:
            result.skipped += 1
            if len(result.skipped_items) < skipped_items_limit:
                result.skipped_items.append(SkippedItem(
                    item_id=item.item_id,
                    subject_id=subject.subject_id,
                    reason=reason,
                ))
            continue

        record_decision(subject, item, decision.model_copy(deep=True))
        result.processed += 1

    logger.info(
        f"Bulk {payload.decision_type.value} on campaign {campaign.campaign_id}: "
        f"{result.processed} processed, {result.skipped} skipped"
    )
    return result


__all__ = [
    "DEFAULT_SKIPPED_ITEMS_LIMIT",
    "SKIP_HIGH_RISK",
    "SKIP_ALREADY_DECIDED",
    "selector_matches",
    "apply_bulk_decision",
]
