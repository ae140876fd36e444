"""
Access Review Risk Scoring

Heuristic "smart suggestions" for campaign items.

Scoring is a fold over an ordered tuple of pure rules. Each rule looks at
one attribute of the item or its subject and returns a new ScoreState with
its point contribution, reason, and any confidence cap or manual-review
flag. Confidence only moves down (high > medium > low) and manual review
only turns on, whatever order the rules run in.

The suggested decision is always APPROVE; high-risk items are flagged for
manual review rather than suggested for revocation.
"""

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, Iterable, Optional, Tuple

from .models import (
    AccessReviewCampaign,
    AccessReviewItem,
    Confidence,
    DataClassification,
    DecisionType,
    EmploymentType,
    EnvironmentType,
    GrantMethod,
    PrivilegeLevel,
    ReviewSubject,
    RiskSuggestion,
    SuggestionSummary,
    SuggestionsResponse,
)

logger = logging.getLogger(__name__)

MIN_RISK_SCORE = 0
MAX_RISK_SCORE = 100
DEFAULT_HIGH_RISK_THRESHOLD = 60

CONFIDENCE_RANK = {
    Confidence.LOW: 0,
    Confidence.MEDIUM: 1,
    Confidence.HIGH: 2,
}


def lower_confidence(current: Confidence, cap: Confidence) -> Confidence:
    """Return the lower of two confidence levels"""
    return cap if CONFIDENCE_RANK[cap] < CONFIDENCE_RANK[current] else current


@dataclass(frozen=True)
class ScoreState:
    """Accumulator threaded through the scoring rules"""
    risk_score: int = 0
    confidence: Confidence = Confidence.HIGH
    requires_manual_review: bool = False
    reasons: Tuple[str, ...] = ()

    def contribute(
        self,
        points: int,
        reason: str,
        confidence_cap: Optional[Confidence] = None,
        manual_review: bool = False,
    ) -> "ScoreState":
        confidence = self.confidence
        if confidence_cap is not None:
            confidence = lower_confidence(confidence, confidence_cap)
        return replace(
            self,
            risk_score=self.risk_score + points,
            confidence=confidence,
            requires_manual_review=self.requires_manual_review or manual_review,
            reasons=self.reasons + (reason,),
        )

    @property
    def clamped_score(self) -> int:
        return max(MIN_RISK_SCORE, min(self.risk_score, MAX_RISK_SCORE))


ScoringRule = Callable[[AccessReviewItem, ReviewSubject, ScoreState], ScoreState]


# ====================
# Rules
# ====================


def privilege_level_rule(
    item: AccessReviewItem, subject: ReviewSubject, state: ScoreState
) -> ScoreState:
    level = item.privilege_level
    if level in (PrivilegeLevel.STANDARD, PrivilegeLevel.READ_ONLY):
        return state.contribute(10, "Standard/read-only access level")
    if level == PrivilegeLevel.ADMIN:
        return state.contribute(
            60,
            "Admin access requires careful review",
            confidence_cap=Confidence.LOW,
            manual_review=True,
        )
    if level == PrivilegeLevel.SUPER_ADMIN:
        return state.contribute(
            90,
            "Super Admin access - highest risk level",
            confidence_cap=Confidence.LOW,
            manual_review=True,
        )
    return state


def data_classification_rule(
    item: AccessReviewItem, subject: ReviewSubject, state: ScoreState
) -> ScoreState:
    classification = item.data_classification
    if classification == DataClassification.PUBLIC:
        return state.contribute(5, "Public data classification - minimal risk")
    if classification == DataClassification.INTERNAL:
        return state.contribute(
            15,
            "Internal data - standard business access",
            confidence_cap=Confidence.MEDIUM,
        )
    if classification == DataClassification.CONFIDENTIAL:
        return state.contribute(
            40,
            "Confidential data - elevated review needed",
            confidence_cap=Confidence.MEDIUM,
        )
    if classification == DataClassification.RESTRICTED:
        return state.contribute(
            70,
            "Restricted data - high-sensitivity access",
            confidence_cap=Confidence.LOW,
            manual_review=True,
        )
    return state


def employment_type_rule(
    item: AccessReviewItem, subject: ReviewSubject, state: ScoreState
) -> ScoreState:
    if subject.employment_type == EmploymentType.CONTRACTOR:
        return state.contribute(
            20,
            "External contractor - verify access necessity",
            confidence_cap=Confidence.MEDIUM,
        )
    if subject.employment_type == EmploymentType.VENDOR:
        return state.contribute(
            30,
            "Vendor access - limited scope recommended",
            manual_review=True,
        )
    return state


def grant_method_rule(
    item: AccessReviewItem, subject: ReviewSubject, state: ScoreState
) -> ScoreState:
    if item.grant_method == GrantMethod.AUTOMATIC:
        return state.contribute(
            0,
            "Automatically granted - review for appropriateness",
            confidence_cap=Confidence.MEDIUM,
        )
    return state


def environment_rule(
    item: AccessReviewItem, subject: ReviewSubject, state: ScoreState
) -> ScoreState:
    if item.environment == EnvironmentType.PRODUCTION:
        return state.contribute(15, "Production environment access")
    return state


DEFAULT_RULES: Tuple[ScoringRule, ...] = (
    privilege_level_rule,
    data_classification_rule,
    employment_type_rule,
    grant_method_rule,
    environment_rule,
)


# ====================
# Scoring
# ====================


def score_item(
    item: AccessReviewItem,
    subject: ReviewSubject,
    rules: Iterable[ScoringRule] = DEFAULT_RULES,
) -> RiskSuggestion:
    """Score one item in the context of its subject"""
    state = ScoreState()
    for rule in rules:
        state = rule(item, subject, state)

    return RiskSuggestion(
        item_id=item.item_id,
        subject_id=subject.subject_id,
        suggested_decision=DecisionType.APPROVE,
        confidence=state.confidence,
        risk_score=state.clamped_score,
        reasons=list(state.reasons),
        requires_manual_review=state.requires_manual_review,
    )


def summarize(
    suggestions: Iterable[RiskSuggestion],
    high_risk_threshold: int = DEFAULT_HIGH_RISK_THRESHOLD,
) -> SuggestionSummary:
    suggestions = list(suggestions)
    total = len(suggestions)
    average = 0
    if total:
        # Half-up rounding
        average = int(math.floor(sum(s.risk_score for s in suggestions) / total + 0.5))

    return SuggestionSummary(
        total_items=total,
        high_confidence=sum(1 for s in suggestions if s.confidence == Confidence.HIGH),
        medium_confidence=sum(1 for s in suggestions if s.confidence == Confidence.MEDIUM),
        low_confidence=sum(1 for s in suggestions if s.confidence == Confidence.LOW),
        require_manual_review=sum(1 for s in suggestions if s.requires_manual_review),
        average_risk_score=average,
        high_risk_items=sum(1 for s in suggestions if s.risk_score >= high_risk_threshold),
    )


def generate_suggestions(
    campaign: AccessReviewCampaign,
    rules: Iterable[ScoringRule] = DEFAULT_RULES,
    high_risk_threshold: int = DEFAULT_HIGH_RISK_THRESHOLD,
) -> SuggestionsResponse:
    """Score every item of a campaign, highest risk first"""
    rules = tuple(rules)
    suggestions = [score_item(item, subject, rules) for subject, item in campaign.iter_items()]
    suggestions.sort(key=lambda s: s.risk_score, reverse=True)

    logger.debug(
        f"Generated {len(suggestions)} suggestions for campaign {campaign.campaign_id}"
    )
    return SuggestionsResponse(
        suggestions=suggestions,
        summary=summarize(suggestions, high_risk_threshold),
    )


__all__ = [
    "CONFIDENCE_RANK",
    "DEFAULT_HIGH_RISK_THRESHOLD",
    "DEFAULT_RULES",
    "ScoreState",
    "ScoringRule",
    "lower_confidence",
    "privilege_level_rule",
    "data_classification_rule",
    "employment_type_rule",
    "grant_method_rule",
    "environment_rule",
    "score_item",
    "summarize",
    "generate_suggestions",
]
