"""Integration tests for directory API connectivity.

These tests require a real access token and are skipped in CI/CD unless
the BOX_ACCESS_TOKEN environment variable is set. They only read from
the directory; no quota is changed.
"""

import os

import pytest

pytestmark = pytest.mark.skipif(
    not os.getenv("BOX_ACCESS_TOKEN"),
    reason="Real directory credentials not available",
)


def test_list_first_page_real() -> None:
    """Fetch the first page of users from the real API."""
    from box_quota.config import load_config
    from box_quota.orchestration.driver import quota_updater_from_config

    config = load_config()
    driver = quota_updater_from_config(config)
    page = driver._client.list_users(0, 10)

    assert page.total_count >= len(page.entries)
    assert len(page.entries) <= 10
