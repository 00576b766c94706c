"""modtoggler: discover module archives and toggle them on and off by renaming."""

from modtoggler.models import (
    CandidateFile,
    ModuleRecord,
    PendingToggle,
    ToggleOutcome,
    ToggleState,
)

__version__ = "0.1.0"

__all__ = [
    "CandidateFile",
    "ModuleRecord",
    "PendingToggle",
    "ToggleOutcome",
    "ToggleState",
    "__version__",
]
