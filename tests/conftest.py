"""
Root conftest.py - Global fixtures and configuration for all test layers.

Test Layers:
    - component/  : Component tests (service + mocked repository/event bus)
    - unit/       : Unit tests (pure functions, no I/O)
    - contracts/  : Data contracts and test data factories (no tests)
"""
import os
import sys
from typing import List

import pytest

# Set testing environment BEFORE any imports of core.config
os.environ.setdefault("ENV", "testing")
os.environ.setdefault("NATS_ENABLED", "false")

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)


# =============================================================================
# Assertion Helpers
# =============================================================================

class AssertionHelpers:
    """Custom assertion helpers for tests"""

    @staticmethod
    def assert_item_ids(error, expected: List[str]):
        """Assert a validation error names exactly the expected items, in order"""
        assert error.item_ids == expected, \
            f"Expected offending items {expected}, got {error.item_ids}"

    @staticmethod
    def assert_event_published(events, event_type, **after):
        """Assert an audit event was published with the expected after-snapshot values"""
        matching = [e for e in events if e.event_type == event_type]
        assert matching, f"Event '{event_type}' not found in {[e.event_type for e in events]}"

        if after:
            for event in matching:
                if all((event.after or {}).get(k) == v for k, v in after.items()):
                    return event
            assert False, f"No event matched criteria: {after}"

        return matching[0]


@pytest.fixture
def assertions() -> AssertionHelpers:
    """Provide assertion helpers"""
    return AssertionHelpers()


# =============================================================================
# Skip Markers Based on Environment
# =============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line("markers", "component: Component tests")
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "requires_db: needs a live PostgreSQL")
    config.addinivalue_line("markers", "requires_nats: needs a live NATS server")


def pytest_collection_modifyitems(config, items):
    """Skip infrastructure-bound tests when the environment says so"""
    skip_db = pytest.mark.skip(reason="PostgreSQL not available")
    skip_nats = pytest.mark.skip(reason="NATS not available")

    for item in items:
        if "requires_db" in item.keywords and os.getenv("SKIP_DB_TESTS"):
            item.add_marker(skip_db)

        if "requires_nats" in item.keywords and os.getenv("SKIP_NATS_TESTS"):
            item.add_marker(skip_nats)
