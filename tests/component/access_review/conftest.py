"""
Component Test Fixtures for Access Review Service

Provides fixtures for component testing with mocked dependencies.
The mock repository stores deep copies and enforces revisions the same
way the PostgreSQL repository does.
"""

import pytest
from datetime import datetime
from typing import Dict, List, Optional, Tuple

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "../../.."))

from core.config import AccessReviewConfig
from microservices.access_review_service.access_review_service import AccessReviewService
from microservices.access_review_service.events.models import (
    AccessReviewAuditEvent,
    AccessReviewEventType,
)
from microservices.access_review_service.protocols import (
    CampaignNotFoundError,
    ConcurrencyConflictError,
)
from tests.contracts.access_review.data_contract import (
    # Enums
    DecisionType,
    PrivilegeLevel,
    # Models
    AccessReviewCampaign,
    CampaignQueryRequest,
    # Factory
    AccessReviewTestDataFactory,
)


TENANT_ID = "ten_component_001"
ACTOR = "usr_reviewer_001"


# ====================
# Mock Repository
# ====================


class MockAccessReviewRepository:
    """Mock repository for component testing"""

    def __init__(self):
        self.campaigns: Dict[Tuple[str, str], AccessReviewCampaign] = {}
        self.write_count = 0

    async def initialize(self):
        pass

    async def close(self):
        pass

    async def health_check(self) -> bool:
        return True

    async def save_campaign(self, campaign: AccessReviewCampaign) -> AccessReviewCampaign:
        stored = campaign.model_copy(update={"revision": 1}, deep=True)
        self.campaigns[(stored.tenant_id, stored.campaign_id)] = stored
        self.write_count += 1
        return stored.model_copy(deep=True)

    async def get_campaign(
        self, tenant_id: str, campaign_id: str
    ) -> Optional[AccessReviewCampaign]:
        campaign = self.campaigns.get((tenant_id, campaign_id))
        return campaign.model_copy(deep=True) if campaign else None

    def _check_revision(self, tenant_id: str, campaign_id: str, expected_revision: int):
        current = self.campaigns.get((tenant_id, campaign_id))
        if current is None:
            raise CampaignNotFoundError(f"Campaign not found: {campaign_id}")
        if current.revision != expected_revision:
            raise ConcurrencyConflictError(
                f"Campaign {campaign_id} was modified concurrently",
                expected_revision=expected_revision,
                actual_revision=current.revision,
            )

    async def update_campaign(
        self, campaign: AccessReviewCampaign, expected_revision: int
    ) -> AccessReviewCampaign:
        self._check_revision(campaign.tenant_id, campaign.campaign_id, expected_revision)
        stored = campaign.model_copy(update={"revision": expected_revision + 1}, deep=True)
        self.campaigns[(stored.tenant_id, stored.campaign_id)] = stored
        self.write_count += 1
        return stored.model_copy(deep=True)

    async def delete_campaign(
        self, tenant_id: str, campaign_id: str, expected_revision: int
    ) -> bool:
        self._check_revision(tenant_id, campaign_id, expected_revision)
        del self.campaigns[(tenant_id, campaign_id)]
        self.write_count += 1
        return True

    async def list_campaigns(
        self, tenant_id: str, query: CampaignQueryRequest
    ) -> Tuple[List[AccessReviewCampaign], int]:
        results = [c for (t, _), c in self.campaigns.items() if t == tenant_id]

        if query.status:
            results = [c for c in results if c.status == query.status]
        if query.system_name:
            results = [
                c for c in results if query.system_name.lower() in c.system_name.lower()
            ]
        if query.environment:
            results = [c for c in results if c.environment == query.environment]
        if query.review_type:
            results = [c for c in results if c.review_type == query.review_type]
        if query.assigned_reviewer_id:
            results = [
                c for c in results if c.assigned_reviewer_id == query.assigned_reviewer_id
            ]
        if query.period_end_from:
            results = [c for c in results if c.period_end >= query.period_end_from]
        if query.period_end_to:
            results = [c for c in results if c.period_end <= query.period_end_to]
        if query.search:
            needle = query.search.lower()
            results = [
                c for c in results
                if needle in c.name.lower()
                or needle in c.system_name.lower()
                or needle in (c.description or "").lower()
            ]

        reverse = query.sort_order == "desc"
        results.sort(key=lambda c: getattr(c, query.sort_by) or datetime.min, reverse=reverse)

        total = len(results)
        page = results[query.offset : query.offset + query.limit]
        return [c.model_copy(deep=True) for c in page], total

    def stored(self, campaign: AccessReviewCampaign) -> AccessReviewCampaign:
        return self.campaigns[(campaign.tenant_id, campaign.campaign_id)]


# ====================
# Mock Audit Sinks
# ====================


class MockEventBus:
    """Mock audit sink for component testing"""

    def __init__(self):
        self.published_events: List[AccessReviewAuditEvent] = []

    async def publish_event(self, event: AccessReviewAuditEvent) -> bool:
        self.published_events.append(event)
        return True

    def get_events_by_type(self, event_type: AccessReviewEventType) -> List[AccessReviewAuditEvent]:
        return [e for e in self.published_events if e.event_type == event_type]

    @property
    def event_types(self) -> List[AccessReviewEventType]:
        return [e.event_type for e in self.published_events]

    def clear_events(self):
        self.published_events = []


class FailingEventBus(MockEventBus):
    """Audit sink that is down"""

    def __init__(self, raise_error: bool = True):
        super().__init__()
        self.raise_error = raise_error
        self.attempts = 0

    async def publish_event(self, event: AccessReviewAuditEvent) -> bool:
        self.attempts += 1
        if self.raise_error:
            raise ConnectionError("audit sink unavailable")
        return False


class MockNATSClient:
    """Mock NATS client exposing the publish() call the publisher uses"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.published: List[Tuple[str, dict]] = []

    async def publish(self, subject: str, payload: dict) -> bool:
        if self.fail:
            raise ConnectionError("nats unavailable")
        self.published.append((subject, payload))
        return True


# ====================
# Fixtures
# ====================


@pytest.fixture
def factory():
    """Provide AccessReviewTestDataFactory"""
    return AccessReviewTestDataFactory


@pytest.fixture
def tenant_id():
    return TENANT_ID


@pytest.fixture
def actor():
    return ACTOR


@pytest.fixture
def mock_repository():
    """Fresh mock repository for each test"""
    return MockAccessReviewRepository()


@pytest.fixture
def mock_event_bus():
    """Fresh mock audit sink for each test"""
    return MockEventBus()


@pytest.fixture
def service_config():
    return AccessReviewConfig()


@pytest.fixture
def service(mock_repository, mock_event_bus, service_config):
    """AccessReviewService wired to the mocks"""
    return AccessReviewService(
        repository=mock_repository,
        audit_sink=mock_event_bus,
        config=service_config,
    )


@pytest.fixture
async def draft_campaign(mock_repository, factory):
    """Stored draft: one subject with a standard and a super_admin item, both pending"""
    items = [
        factory.make_item(privilege_level=PrivilegeLevel.STANDARD),
        factory.make_item(privilege_level=PrivilegeLevel.SUPER_ADMIN),
    ]
    campaign = factory.make_campaign(
        subjects=[factory.make_subject(items=items)], tenant_id=TENANT_ID
    )
    return await mock_repository.save_campaign(campaign)


@pytest.fixture
async def standard_campaign(mock_repository, factory):
    """Stored draft with a single approved standard item"""
    campaign = factory.make_decided_campaign(
        privilege_levels=[PrivilegeLevel.STANDARD],
        decision_types=[DecisionType.APPROVE],
        tenant_id=TENANT_ID,
    )
    return await mock_repository.save_campaign(campaign)


@pytest.fixture
async def submitted_campaign(mock_repository, factory):
    """Stored submitted campaign awaiting second-level approval"""
    campaign = factory.make_decided_campaign(
        privilege_levels=[PrivilegeLevel.STANDARD, PrivilegeLevel.SUPER_ADMIN],
        decision_types=[DecisionType.APPROVE, DecisionType.REVOKE],
        tenant_id=TENANT_ID,
    )
    stored = await mock_repository.save_campaign(campaign)
    service = AccessReviewService(repository=mock_repository)
    return await service.submit_campaign(
        TENANT_ID, stored.campaign_id, factory.make_submit_request(), ACTOR
    )


@pytest.fixture
def failing_event_bus():
    """Audit sink that raises on every publish"""
    return FailingEventBus(raise_error=True)


@pytest.fixture
def refusing_event_bus():
    """Audit sink that reports every publish as not recorded"""
    return FailingEventBus(raise_error=False)


@pytest.fixture
def mock_nats_client():
    return MockNATSClient()


@pytest.fixture
def failing_nats_client():
    return MockNATSClient(fail=True)
