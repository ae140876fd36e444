"""
Component Test Layer Configuration

Structure:
    tests/component/
    └── access_review/   Service orchestration against mocked repository/event bus

Usage:
    pytest tests/component -v
    pytest tests/component/access_review -v
"""
import os
import sys

import pytest

# Set testing environment BEFORE any imports
os.environ["ENV"] = "testing"
os.environ["ENVIRONMENT"] = "testing"
os.environ["NATS_ENABLED"] = "false"

# Add project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

# Load test environment variables
from pathlib import Path
from dotenv import load_dotenv

project_root = Path(__file__).parent.parent.parent
test_env_file = project_root / "tests" / "config" / ".env.test"
if test_env_file.exists():
    load_dotenv(test_env_file, override=True)


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """Mark everything collected under tests/component"""
    component_root = os.path.dirname(os.path.abspath(__file__))
    for item in items:
        if str(item.path).startswith(component_root):
            item.add_marker(pytest.mark.component)
