"""
Shared pytest configuration and fixtures for all tests.
"""

import os
import sys
from pathlib import Path

import pytest

# Add project root to sys.path to enable importing project modules
# This allows tests to import from 'core', 'sql' and 'pg_test_util' without installation
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))


def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line("markers", "unit: Unit tests - isolated function-level tests")
    config.addinivalue_line("markers", "integration: Integration tests - require a live PostgreSQL server")
    config.addinivalue_line("markers", "smoke: Smoke tests - basic functionality checks")
    config.addinivalue_line("markers", "edge_case: Edge case tests - boundary conditions")
    config.addinivalue_line("markers", "regression: Regression tests - previously fixed bugs")


@pytest.fixture
def admin_connection_string():
    """Connection string of a live server, or skip the test."""
    connection_string = os.environ.get("PG_TEST_CONNECTION_STRING")
    if not connection_string:
        pytest.skip("PG_TEST_CONNECTION_STRING is not set")
    return connection_string
