"""Resource and data source contracts.

Each resource kind works on an explicit pydantic config model (what the user
declared) and state model (what was recorded after the last apply). The
surrounding framework owns diffing and plan rendering; it calls these hooks.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar

from pydantic import BaseModel

from .client import TailscaleClient
from .recreate import NO_DIRECTIVE, RecreateDirective


class ResourceError(Exception):
    """A resource operation failed.

    Carries a short summary plus the detail of the underlying remote error,
    whose text is preserved verbatim.
    """

    def __init__(self, summary: str, cause: BaseException | None = None) -> None:
        self.summary = summary
        self.detail = str(cause) if cause is not None else ""
        message = f"{summary}: {self.detail}" if self.detail else summary
        super().__init__(message)


class Resource(ABC):
    """A managed remote object with create/read/update/delete and import."""

    type_name: ClassVar[str]
    description: ClassVar[str] = ""
    config_model: ClassVar[type[BaseModel]]
    state_model: ClassVar[type[BaseModel]]

    def __init__(self, client: TailscaleClient) -> None:
        self._client = client

    @abstractmethod
    async def create(self, config: Any) -> Any:
        """Create the remote object and return its recorded state."""

    @abstractmethod
    async def read(self, state: Any) -> Any | None:
        """Refresh state from the API; None means the object is gone."""

    @abstractmethod
    async def update(self, state: Any, config: Any) -> Any:
        """Apply in-place changes and return the new state."""

    @abstractmethod
    async def delete(self, state: Any) -> None:
        """Delete the remote object."""

    @abstractmethod
    async def import_state(self, resource_id: str) -> Any:
        """Build state for an existing remote object."""

    async def customize_diff(self, state: Any | None, config: Any) -> RecreateDirective:
        """Pre-plan hook; may flag an attribute for forced replacement."""
        return NO_DIRECTIVE

    def wait_for(self, state: Any) -> str:
        return getattr(state, "wait_for", "") or ""


class DataSource(ABC):
    """A read-only view of remote data."""

    type_name: ClassVar[str]
    description: ClassVar[str] = ""
    query_model: ClassVar[type[BaseModel]]
    state_model: ClassVar[type[BaseModel]]

    def __init__(self, client: TailscaleClient) -> None:
        self._client = client

    @abstractmethod
    async def read(self, query: Any) -> Any:
        """Fetch the data described by ``query``."""

    def wait_for(self, query: Any) -> str:
        return getattr(query, "wait_for", "") or ""
