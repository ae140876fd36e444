#!/usr/bin/env python3
"""Access review engine settings"""
import os
from dataclasses import dataclass

def _bool(val: str) -> bool:
    return val.lower() == "true"

def _int(val: str, default: int) -> int:
    try:
        return int(val) if val else default
    except ValueError:
        return default


@dataclass
class AccessReviewConfig:
    """Business-rule knobs for the campaign engine"""
    skipped_items_limit: int = 20
    high_risk_threshold: int = 60
    require_restricted_evidence: bool = False
    default_skip_high_risk: bool = True

    postgres_schema: str = "access_review"
    event_source: str = "access_review_service"

    @classmethod
    def from_env(cls) -> 'AccessReviewConfig':
        """Load access review config from environment variables"""
        return cls(
            skipped_items_limit=_int(os.getenv("ACCESS_REVIEW_SKIPPED_ITEMS_LIMIT", "20"), 20),
            high_risk_threshold=_int(os.getenv("ACCESS_REVIEW_HIGH_RISK_THRESHOLD", "60"), 60),
            require_restricted_evidence=_bool(
                os.getenv("ACCESS_REVIEW_REQUIRE_RESTRICTED_EVIDENCE", "false")
            ),
            default_skip_high_risk=_bool(os.getenv("ACCESS_REVIEW_DEFAULT_SKIP_HIGH_RISK", "true")),
            postgres_schema=os.getenv("ACCESS_REVIEW_POSTGRES_SCHEMA", "access_review"),
            event_source=os.getenv("ACCESS_REVIEW_EVENT_SOURCE", "access_review_service"),
        )
