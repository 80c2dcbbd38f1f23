"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for tailscale_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from provider.config import ProviderConfig  # noqa: E402
from tailscale_mock import MockTailscaleClient  # noqa: E402


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(api_key="tskey-api-test", tailnet="example.com")


@pytest.fixture
def mock_client() -> MockTailscaleClient:
    return MockTailscaleClient()
