"""Toggle state machine, pending store and deferred retry scheduler."""

from modtoggler.toggle.files import ModuleFiles
from modtoggler.toggle.machine import ModuleToggler
from modtoggler.toggle.scheduler import DeferredRetryScheduler, RetryReport
from modtoggler.toggle.store import PendingToggleStore

__all__ = [
    "DeferredRetryScheduler",
    "ModuleFiles",
    "ModuleToggler",
    "PendingToggleStore",
    "RetryReport",
]
