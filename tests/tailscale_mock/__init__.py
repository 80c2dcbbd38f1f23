"""Tailscale API Mock for Testing.

In-memory stand-in for provider.client.TailscaleClient that enables tests
without network access.

Key Features:
- In-memory state for keys, DNS preferences, the ACL and devices
- Read-after-write lag simulation (objects invisible for N reads)
- Error injection for testing failure scenarios
- Call counting for asserting on remote traffic

Usage:
    from tailscale_mock import MockTailscaleClient

    client = MockTailscaleClient()
    provider = Provider(config, client=client, poll_interval=0.01)
    ...
    assert client.calls["get_key"] == 1
"""

from .api import MockTailscaleClient, make_device, make_key

__all__ = [
    "MockTailscaleClient",
    "make_device",
    "make_key",
]
