"""Data model: module records, scan candidates, toggle states and pending toggles."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

UNKNOWN_VERSION = "Unknown"


class ModuleRecord(BaseModel):
    """One discovered module. Built fresh on every scan, never persisted.

    Wire names follow the client protocol (camelCase); use
    model_dump(by_alias=True) when publishing.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key: str
    name: str
    active: bool
    loaded: bool = False
    version: str = UNKNOWN_VERSION
    download_link: str | None = Field(default=None, alias="downloadLink")
    internal_name: str = Field(alias="internalAssemblyName")


@dataclass(frozen=True)
class CandidateFile:
    """File found by a discovery scan, under the active or inactive naming convention."""

    path: Path
    active: bool


class ToggleState(Enum):
    ENABLED = "enabled"
    DISABLED = "disabled"
    LOCKED_PENDING_DISABLE = "locked_pending_disable"


class ToggleOutcome(Enum):
    """Result of a single toggle request."""

    ENABLED = "enabled"
    DISABLED = "disabled"
    SCHEDULED = "scheduled"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(frozen=True)
class PendingToggle:
    """Desired state change that could not be applied yet. In memory only."""

    module_key: str
    desired: ToggleState

    @property
    def enable(self) -> bool:
        return self.desired is ToggleState.ENABLED
