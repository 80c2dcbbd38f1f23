"""Pydantic models for API payloads and resource configuration.

These models provide:
1. Type-safe parsing of Tailscale API responses
2. Validation of declared resource configuration at the boundary
3. Explicit, typed state per resource instead of a dynamic attribute bag
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

from .recreate import RecreatePolicy

# Default key lifetime applied by the API when no expiry is requested
DEFAULT_KEY_EXPIRY_SECONDS = 7776000  # 90 days
MAX_KEY_DESCRIPTION_LENGTH = 50


# =============================================================================
# API Models
# =============================================================================


class ApiModel(BaseModel):
    """Base for API payloads: camelCase aliases, unknown fields ignored."""

    model_config = {"extra": "ignore", "populate_by_name": True}


class DeviceCreateCapabilities(ApiModel):
    """Capabilities granted to devices registered with a key."""

    reusable: bool = False
    ephemeral: bool = False
    preauthorized: bool = False
    tags: list[str] = Field(default_factory=list)


class DeviceCapabilities(ApiModel):
    create: DeviceCreateCapabilities = Field(default_factory=DeviceCreateCapabilities)


class KeyCapabilities(ApiModel):
    devices: DeviceCapabilities = Field(default_factory=DeviceCapabilities)


class Key(ApiModel):
    """A tailnet key as returned by the keys API."""

    id: str
    key: str | None = None  # Only returned on creation
    key_type: str = Field("auth", alias="keyType")
    description: str = ""
    created: datetime | None = None
    expires: datetime | None = None
    expiry_seconds: int | None = Field(None, alias="expirySeconds")
    invalid: bool = False
    capabilities: KeyCapabilities = Field(default_factory=KeyCapabilities)
    user_id: str | None = Field(None, alias="userId")


class CreateKeyRequest(ApiModel):
    """Body of a key creation request."""

    capabilities: KeyCapabilities
    expiry_seconds: int | None = Field(None, alias="expirySeconds")
    description: str | None = None


class DNSPreferences(ApiModel):
    magic_dns: bool = Field(False, alias="magicDNS")


class Device(ApiModel):
    """A device (node) in the tailnet."""

    id: str
    node_id: str = Field("", alias="nodeId")
    name: str
    hostname: str = ""
    user: str = ""
    os: str = ""
    addresses: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    authorized: bool = False
    client_version: str = Field("", alias="clientVersion")
    last_seen: datetime | None = Field(None, alias="lastSeen")


class ACL(ApiModel):
    """The tailnet policy file in both of its renderings."""

    json_text: str
    hujson_text: str


# =============================================================================
# Tailnet Key Resource
# =============================================================================


class TailnetKeyConfig(BaseModel):
    """Declared configuration of a tailscale_tailnet_key resource."""

    model_config = {"extra": "ignore"}

    reusable: bool = False
    ephemeral: bool = False
    preauthorized: bool = False
    tags: list[str] = Field(default_factory=list)
    expiry: Annotated[int, Field(gt=0)] | None = None
    description: str = ""
    recreate_if_invalid: RecreatePolicy = RecreatePolicy.UNSET

    @field_validator("description")
    @classmethod
    def validate_description(cls, v: str) -> str:
        if len(v) > MAX_KEY_DESCRIPTION_LENGTH:
            raise ValueError(
                f"description must be {MAX_KEY_DESCRIPTION_LENGTH} characters or less"
            )
        return v

    @field_validator("tags")
    @classmethod
    def normalize_tags(cls, v: list[str]) -> list[str]:
        # Tags form a set; order is not significant
        return sorted(set(v))

    @field_validator("recreate_if_invalid", mode="before")
    @classmethod
    def validate_recreate_if_invalid(cls, v: object) -> RecreatePolicy:
        if v is not None and not isinstance(v, str):
            raise ValueError(f"unexpected value of recreate_if_invalid: {v}")
        return RecreatePolicy.parse(v)


class TailnetKeyState(TailnetKeyConfig):
    """Recorded state of a tailscale_tailnet_key resource."""

    id: Annotated[str, Field(min_length=1)]
    key: str | None = None  # Sensitive, never returned by reads
    created_at: str | None = None
    expires_at: str | None = None
    invalid: bool = False
    user_id: str | None = None


# =============================================================================
# DNS Preferences Resource
# =============================================================================


class DNSPreferencesConfig(BaseModel):
    """Declared configuration of a tailscale_dns_preferences resource."""

    model_config = {"extra": "ignore"}

    magic_dns: bool


class DNSPreferencesState(DNSPreferencesConfig):
    id: Annotated[str, Field(min_length=1)]


# =============================================================================
# Data Sources
# =============================================================================


class ACLQuery(BaseModel):
    """The ACL data source takes no arguments."""

    model_config = {"extra": "ignore"}


class ACLState(BaseModel):
    id: str
    json_text: str = Field(alias="json")
    hujson_text: str = Field(alias="hujson")

    model_config = {"populate_by_name": True}


class DeviceQuery(BaseModel):
    """Lookup of a single device by name or hostname."""

    model_config = {"extra": "ignore"}

    name: str | None = None
    hostname: str | None = None
    wait_for: str = ""

    @model_validator(mode="after")
    def validate_selector(self) -> DeviceQuery:
        if bool(self.name) == bool(self.hostname):
            raise ValueError("exactly one of name or hostname must be set")
        return self

    @property
    def selector(self) -> tuple[str, str]:
        if self.name:
            return "name", self.name
        return "hostname", self.hostname or ""


class DeviceState(BaseModel):
    id: str
    node_id: str = ""
    name: str
    hostname: str = ""
    user: str = ""
    addresses: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    authorized: bool = False
    wait_for: str = ""
