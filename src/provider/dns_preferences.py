"""The tailscale_dns_preferences resource.

DNS preferences are a tailnet-wide singleton, so the resource id is a random
UUID and deletion resets preferences to their defaults.
"""

from __future__ import annotations

import logging
import uuid

from azure.core.exceptions import AzureError, ResourceNotFoundError

from .models import DNSPreferences, DNSPreferencesConfig, DNSPreferencesState
from .resources import Resource, ResourceError

logger = logging.getLogger(__name__)


class DNSPreferencesResource(Resource):
    type_name = "tailscale_dns_preferences"
    description = "DNS preferences (MagicDNS) of the tailnet."
    config_model = DNSPreferencesConfig
    state_model = DNSPreferencesState

    async def _set(self, magic_dns: bool) -> None:
        try:
            await self._client.set_dns_preferences(DNSPreferences(magic_dns=magic_dns))
        except AzureError as e:
            raise ResourceError("Failed to set dns preferences", e) from e

    async def create(self, config: DNSPreferencesConfig) -> DNSPreferencesState:
        await self._set(config.magic_dns)
        state = DNSPreferencesState(id=str(uuid.uuid4()), magic_dns=config.magic_dns)
        logger.info("DNS preferences set", extra={"magic_dns": config.magic_dns})
        return await self.read(state)

    async def read(self, state: DNSPreferencesState) -> DNSPreferencesState:
        try:
            preferences = await self._client.get_dns_preferences()
        except ResourceNotFoundError:
            # Not-found stays distinguishable for wait_for polling.
            raise
        except AzureError as e:
            raise ResourceError("Failed to fetch dns preferences", e) from e
        return state.model_copy(update={"magic_dns": preferences.magic_dns})

    async def update(
        self, state: DNSPreferencesState, config: DNSPreferencesConfig
    ) -> DNSPreferencesState:
        if state.magic_dns != config.magic_dns:
            await self._set(config.magic_dns)
        return await self.read(state)

    async def delete(self, state: DNSPreferencesState) -> None:
        await self._set(False)

    async def import_state(self, resource_id: str) -> DNSPreferencesState:
        return await self.read(DNSPreferencesState(id=resource_id, magic_dns=False))
