"""The tailscale_tailnet_key resource.

Pre-authentication keys register new nodes without an interactive login.
Every declared attribute except ``recreate_if_invalid`` forces replacement,
so update only records the new policy.

The API keeps returning keys for some time after they expire; the
server-computed ``invalid`` flag, not presence, decides whether a key is
still usable. See recreate.py for how that feeds replacement decisions.
"""

from __future__ import annotations

import logging
from datetime import datetime

from azure.core.exceptions import AzureError, ResourceNotFoundError

from .models import (
    CreateKeyRequest,
    DeviceCapabilities,
    DeviceCreateCapabilities,
    Key,
    KeyCapabilities,
    TailnetKeyConfig,
    TailnetKeyState,
)
from .recreate import (
    NO_DIRECTIVE,
    RecreateDirective,
    RemoteKeyState,
    evaluate_diff,
    should_force_recreate,
)
from .resources import Resource, ResourceError

logger = logging.getLogger(__name__)

SUPPORTED_KEY_TYPE = "auth"


def _format_time(value: datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat().replace("+00:00", "Z")


def _state_from_key(state: TailnetKeyState, key: Key) -> TailnetKeyState:
    """Overlay remote key attributes onto recorded state, keeping the secret."""
    capabilities = key.capabilities.devices.create
    return state.model_copy(
        update={
            "id": key.id,
            "reusable": capabilities.reusable,
            "ephemeral": capabilities.ephemeral,
            "preauthorized": capabilities.preauthorized,
            "tags": sorted(set(capabilities.tags)),
            "expiry": key.expiry_seconds,
            "description": key.description,
            "created_at": _format_time(key.created),
            "expires_at": _format_time(key.expires),
            "invalid": key.invalid,
            "user_id": key.user_id,
        }
    )


def _check_key_type(key: Key) -> None:
    if key.key_type != SUPPORTED_KEY_TYPE:
        raise ResourceError(
            f"Invalid key type '{key.key_type}'",
            ValueError(f"Only '{SUPPORTED_KEY_TYPE}' keys are supported by this resource"),
        )


class TailnetKeyResource(Resource):
    """Manages pre-authentication keys."""

    type_name = "tailscale_tailnet_key"
    description = (
        "Pre-authentication keys that can register new nodes without signing in "
        "via a web browser."
    )
    config_model = TailnetKeyConfig
    state_model = TailnetKeyState

    async def create(self, config: TailnetKeyConfig) -> TailnetKeyState:
        request = CreateKeyRequest(
            capabilities=KeyCapabilities(
                devices=DeviceCapabilities(
                    create=DeviceCreateCapabilities(
                        reusable=config.reusable,
                        ephemeral=config.ephemeral,
                        preauthorized=config.preauthorized,
                        tags=config.tags,
                    )
                )
            ),
            expiry_seconds=config.expiry,
            description=config.description or None,
        )

        try:
            key = await self._client.create_key(request)
        except AzureError as e:
            raise ResourceError("Failed to create key", e) from e

        state = TailnetKeyState(
            **config.model_dump(),
            id=key.id,
            key=key.key,
            created_at=_format_time(key.created),
            expires_at=_format_time(key.expires),
            invalid=key.invalid,
        )
        logger.info(
            f"Created tailnet key '{key.id}'",
            extra={"key_id": key.id, "reusable": config.reusable},
        )

        refreshed = await self.read(state)
        if refreshed is None:
            # Creation succeeded; the key is not visible to reads yet.
            logger.warning(
                f"Tailnet key '{key.id}' not readable right after creation",
                extra={"key_id": key.id},
            )
            return state
        return refreshed

    async def read(self, state: TailnetKeyState) -> TailnetKeyState | None:
        recreate = should_force_recreate(state.reusable, state.recreate_if_invalid)

        try:
            key = await self._client.get_key(state.id)
        except ResourceNotFoundError:
            if recreate:
                logger.info(
                    f"Tailnet key '{state.id}' no longer exists, removing from state",
                    extra={"key_id": state.id},
                )
                return None
            return state
        except AzureError as e:
            raise ResourceError("Failed to fetch key", e) from e

        if key.invalid and recreate:
            logger.info(
                f"Tailnet key '{state.id}' is invalid, removing from state",
                extra={"key_id": state.id},
            )
            return None

        _check_key_type(key)
        return _state_from_key(state, key)

    async def update(self, state: TailnetKeyState, config: TailnetKeyConfig) -> TailnetKeyState:
        return state.model_copy(update={"recreate_if_invalid": config.recreate_if_invalid})

    async def delete(self, state: TailnetKeyState) -> None:
        try:
            await self._client.delete_key(state.id)
        except ResourceNotFoundError:
            # Single-use keys may already be gone once consumed.
            logger.info(
                f"Tailnet key '{state.id}' already deleted",
                extra={"key_id": state.id},
            )
        except AzureError as e:
            raise ResourceError("Failed to delete key", e) from e

    async def import_state(self, resource_id: str) -> TailnetKeyState:
        try:
            key = await self._client.get_key(resource_id)
        except AzureError as e:
            raise ResourceError(f"Failed to import key '{resource_id}'", e) from e

        _check_key_type(key)
        return _state_from_key(TailnetKeyState(id=resource_id), key)

    async def customize_diff(
        self, state: TailnetKeyState | None, config: TailnetKeyConfig
    ) -> RecreateDirective:
        if state is None:
            return NO_DIRECTIVE

        async def lookup() -> RemoteKeyState:
            key = await self._client.get_key(state.id)
            return RemoteKeyState(
                reusable=key.capabilities.devices.create.reusable,
                invalid=key.invalid,
                recreate_policy=config.recreate_if_invalid,
            )

        return await evaluate_diff(
            state.recreate_if_invalid,
            config.recreate_if_invalid,
            config.reusable,
            lookup,
        )
