"""Data sources: the tailnet ACL and single-device lookup."""

from __future__ import annotations

import json
import logging
import uuid

from azure.core.exceptions import AzureError, ResourceNotFoundError

from .models import ACLQuery, ACLState, DeviceQuery, DeviceState
from .resources import DataSource, ResourceError

logger = logging.getLogger(__name__)


class ACLDataSource(DataSource):
    type_name = "tailscale_acl"
    description = "The tailnet policy file as JSON and HuJSON."
    query_model = ACLQuery
    state_model = ACLState

    async def read(self, query: ACLQuery) -> ACLState:
        try:
            acl = await self._client.get_acl()
        except ResourceNotFoundError:
            raise
        except AzureError as e:
            raise ResourceError("Failed to fetch ACL", e) from e

        try:
            minimized = json.dumps(json.loads(acl.json_text), separators=(",", ":"))
        except ValueError as e:
            raise ResourceError("Failed to parse ACL as JSON", e) from e

        return ACLState(id=str(uuid.uuid4()), json_text=minimized, hujson_text=acl.hujson_text)


class DeviceDataSource(DataSource):
    """Looks up one device by name or hostname.

    A device that registered moments ago may not be listed yet, so a missing
    device raises ResourceNotFoundError and the read can be retried with
    ``wait_for``.
    """

    type_name = "tailscale_device"
    description = "A single device, looked up by name or hostname."
    query_model = DeviceQuery
    state_model = DeviceState

    async def read(self, query: DeviceQuery) -> DeviceState:
        field_name, wanted = query.selector
        try:
            devices = await self._client.list_devices()
        except AzureError as e:
            raise ResourceError("Failed to fetch devices", e) from e

        for device in devices:
            if getattr(device, field_name) == wanted:
                return DeviceState(
                    id=device.id,
                    node_id=device.node_id,
                    name=device.name,
                    hostname=device.hostname,
                    user=device.user,
                    addresses=device.addresses,
                    tags=device.tags,
                    authorized=device.authorized,
                    wait_for=query.wait_for,
                )

        logger.debug(
            f"No device with {field_name}={wanted!r}",
            extra={"selector": field_name, "value": wanted},
        )
        raise ResourceNotFoundError(f"Could not find device with {field_name}={wanted}")
