"""Collaborator protocols: hosting runtime and notification sink.

Components accept anything that satisfies these protocols; tests pass fakes.
"""

from pathlib import Path
from typing import Any, Callable, Iterable, Protocol, runtime_checkable

ShutdownHook = Callable[[], Any]


@runtime_checkable
class Runtime(Protocol):
    """Hosting runtime that keeps module files open while they are loaded."""

    def loaded_paths(self) -> Iterable[Path]:
        """Backing file paths of every currently loaded module."""

    def add_shutdown_hook(self, hook: ShutdownHook) -> None:
        """Register a callable fired when the runtime shuts down."""


@runtime_checkable
class NotificationSink(Protocol):
    """Fire-and-forget broadcast target (e.g. connected WebSocket clients)."""

    async def broadcast(self, message: str) -> None:
        """Deliver a text message to every listener. Best effort."""


def _normalize(path: Path | str) -> str:
    return str(Path(path).absolute()).casefold()


def is_path_loaded(runtime: Runtime | None, path: Path) -> bool:
    """True when the runtime reports a loaded module whose path matches, ignoring case."""
    if runtime is None:
        return False
    target = _normalize(path)
    return any(_normalize(p) == target for p in runtime.loaded_paths())
