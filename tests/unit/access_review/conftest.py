"""
Unit Test Fixtures for Access Review Service

Pure-logic fixtures: no repository, no event bus.
Uses AccessReviewTestDataFactory from the data contract.
"""

import pytest
from datetime import datetime, timezone

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from tests.contracts.access_review.data_contract import (
    CampaignStatus,
    DecisionType,
    PrivilegeLevel,
    AccessReviewTestDataFactory,
)


@pytest.fixture
def factory():
    """Provide AccessReviewTestDataFactory"""
    return AccessReviewTestDataFactory


@pytest.fixture
def now():
    """Fixed clock for deterministic timestamps"""
    return datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def actor():
    return "usr_reviewer_001"


@pytest.fixture
def draft_campaign(factory):
    """Draft campaign with one subject holding a standard and a super_admin item, both pending"""
    items = [
        factory.make_item(privilege_level=PrivilegeLevel.STANDARD),
        factory.make_item(privilege_level=PrivilegeLevel.SUPER_ADMIN),
    ]
    return factory.make_campaign(subjects=[factory.make_subject(items=items)])


@pytest.fixture
def decided_campaign(factory):
    """Draft campaign whose standard and super_admin items are both approved"""
    return factory.make_decided_campaign(
        privilege_levels=[PrivilegeLevel.STANDARD, PrivilegeLevel.SUPER_ADMIN],
        decision_types=[DecisionType.APPROVE, DecisionType.APPROVE],
    )
