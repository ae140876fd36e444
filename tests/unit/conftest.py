"""
Unit Test Layer Configuration

Structure:
    tests/unit/
    └── access_review/   Pure engine logic: scoring, ledger, bulk, transitions

Usage:
    pytest tests/unit -v                 # All unit tests
    pytest tests/unit -m unit -v         # By marker
"""
import os
import sys

import pytest

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """Mark everything collected under tests/unit"""
    unit_root = os.path.dirname(os.path.abspath(__file__))
    for item in items:
        if str(item.path).startswith(unit_root):
            item.add_marker(pytest.mark.unit)
