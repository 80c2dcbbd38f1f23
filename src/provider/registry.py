"""Provider: registry of resource and data source types.

Every read, for resources and data sources alike, goes through
poll_until_ready using the object's ``wait_for`` value, so read-after-write
lag is tolerated wherever the user asked for it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any

from .client import TailscaleClient
from .config import POLL_INTERVAL_SECONDS, ProviderConfig
from .data_sources import ACLDataSource, DeviceDataSource
from .dns_preferences import DNSPreferencesResource
from .errors import UnknownTypeError
from .poller import PollOutcome, poll_until_ready
from .recreate import RecreateDirective
from .resources import DataSource, Resource
from .tailnet_key import TailnetKeyResource

logger = logging.getLogger(__name__)

RESOURCE_TYPES: tuple[type[Resource], ...] = (
    TailnetKeyResource,
    DNSPreferencesResource,
)

DATA_SOURCE_TYPES: tuple[type[DataSource], ...] = (
    ACLDataSource,
    DeviceDataSource,
)


class Provider:
    """Entry point the reconciliation framework calls into."""

    def __init__(
        self,
        config: ProviderConfig,
        client: TailscaleClient | None = None,
        *,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._config = config
        self._client = client if client is not None else TailscaleClient(config)
        self._poll_interval = poll_interval
        self._resources: dict[str, Resource] = {
            cls.type_name: cls(self._client) for cls in RESOURCE_TYPES
        }
        self._data_sources: dict[str, DataSource] = {
            cls.type_name: cls(self._client) for cls in DATA_SOURCE_TYPES
        }

    async def __aenter__(self) -> Provider:
        return self

    async def __aexit__(self, *exc_details: Any) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    @property
    def resource_types(self) -> list[str]:
        return sorted(self._resources)

    @property
    def data_source_types(self) -> list[str]:
        return sorted(self._data_sources)

    def resource(self, type_name: str) -> Resource:
        try:
            return self._resources[type_name]
        except KeyError as e:
            raise UnknownTypeError(
                f"Unknown resource type '{type_name}'. Valid types: {self.resource_types}"
            ) from e

    def data_source(self, type_name: str) -> DataSource:
        try:
            return self._data_sources[type_name]
        except KeyError as e:
            raise UnknownTypeError(
                f"Unknown data source type '{type_name}'. Valid types: {self.data_source_types}"
            ) from e

    # -------------------------------------------------------------------------
    # Resource operations
    # -------------------------------------------------------------------------

    async def create(self, type_name: str, config: Mapping[str, Any]) -> Any:
        resource = self.resource(type_name)
        return await resource.create(resource.config_model.model_validate(config))

    async def read(
        self,
        type_name: str,
        state: Mapping[str, Any],
        *,
        cancel: asyncio.Event | None = None,
    ) -> PollOutcome:
        """Refresh a resource; a None value in the outcome means it is gone."""
        resource = self.resource(type_name)
        current = resource.state_model.model_validate(state)

        async def read_operation(resource_id: str) -> Any:
            return await resource.read(current)

        return await poll_until_ready(
            read_operation,
            current.id,
            resource.wait_for(current),
            cancel=cancel,
            interval=self._poll_interval,
        )

    async def update(
        self, type_name: str, state: Mapping[str, Any], config: Mapping[str, Any]
    ) -> Any:
        resource = self.resource(type_name)
        return await resource.update(
            resource.state_model.model_validate(state),
            resource.config_model.model_validate(config),
        )

    async def delete(self, type_name: str, state: Mapping[str, Any]) -> None:
        resource = self.resource(type_name)
        await resource.delete(resource.state_model.model_validate(state))

    async def import_state(self, type_name: str, resource_id: str) -> Any:
        return await self.resource(type_name).import_state(resource_id)

    async def plan(
        self,
        type_name: str,
        state: Mapping[str, Any] | None,
        config: Mapping[str, Any],
    ) -> RecreateDirective:
        """Run the pre-plan hook for one resource."""
        resource = self.resource(type_name)
        current = resource.state_model.model_validate(state) if state is not None else None
        directive = await resource.customize_diff(
            current, resource.config_model.model_validate(config)
        )
        if directive.force_new:
            logger.info(
                f"{type_name} must be replaced",
                extra={"type": type_name, "attribute": directive.attribute},
            )
        return directive

    # -------------------------------------------------------------------------
    # Data source operations
    # -------------------------------------------------------------------------

    async def read_data_source(
        self,
        type_name: str,
        query: Mapping[str, Any],
        *,
        cancel: asyncio.Event | None = None,
    ) -> PollOutcome:
        data_source = self.data_source(type_name)
        parsed = data_source.query_model.model_validate(query)

        async def read_operation(resource_id: str) -> Any:
            return await data_source.read(parsed)

        return await poll_until_ready(
            read_operation,
            type_name,
            data_source.wait_for(parsed),
            cancel=cancel,
            interval=self._poll_interval,
        )
