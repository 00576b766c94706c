"""Entry point: bootstrap host, discovery, toggler and the WebSocket server."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import uvicorn
from dotenv import load_dotenv

from modtoggler.commands import CommandDispatcher
from modtoggler.discovery import DEFAULT_DENY_LIST, DiscoveryEngine, MetadataExtractor
from modtoggler.host import ModuleHost
from modtoggler.layout import ModuleLayout
from modtoggler.logging_config import setup_logging
from modtoggler.notify import Notifier
from modtoggler.server import WebSocketHub, create_app
from modtoggler.settings import get_setting, load_settings
from modtoggler.toggle import (
    DeferredRetryScheduler,
    ModuleFiles,
    ModuleToggler,
    PendingToggleStore,
)

_PROJECT_ROOT = Path(__file__).resolve().parent.parent

logger = logging.getLogger(__name__)


@dataclass
class App:
    """Wired components. Built by build_app(); tests build it against tmp dirs."""

    root_dir: Path
    layout: ModuleLayout
    host: ModuleHost
    engine: DiscoveryEngine
    store: PendingToggleStore
    toggler: ModuleToggler
    scheduler: DeferredRetryScheduler
    hub: WebSocketHub
    notifier: Notifier
    dispatcher: CommandDispatcher


def _resolve_root(settings: dict[str, Any]) -> Path:
    root = Path(get_setting(settings, "modules.root_dir", "sandbox"))
    return root if root.is_absolute() else _PROJECT_ROOT / root


def build_app(settings: dict[str, Any], root_dir: Path | None = None) -> App:
    root_dir = root_dir or _resolve_root(settings)
    layout = ModuleLayout.for_root(
        root_dir,
        directory=get_setting(settings, "modules.directory", "modules"),
        extension=get_setting(settings, "modules.extension", ".pkg"),
        disabled_suffix=get_setting(settings, "modules.disabled_suffix", ".disabled"),
    )
    extractor = MetadataExtractor(
        layout,
        deny_list=get_setting(settings, "modules.deny_list", DEFAULT_DENY_LIST),
        marker=get_setting(settings, "modules.marker", "ModulePlugin"),
    )
    host = ModuleHost(extractor)
    engine = DiscoveryEngine(
        extractor,
        runtime=host,
        directory=get_setting(settings, "modules.directory", "modules"),
    )
    hub = WebSocketHub()
    notifier = Notifier(hub)
    store = PendingToggleStore()
    files = ModuleFiles(layout)
    toggler = ModuleToggler(files, store, runtime=host, notifier=notifier)
    scheduler = DeferredRetryScheduler(
        files,
        store,
        grace_period=float(get_setting(settings, "scheduler.grace_period", 1.0)),
        max_attempts=int(get_setting(settings, "scheduler.max_attempts", 3)),
        retry_pause=float(get_setting(settings, "scheduler.retry_pause", 0.2)),
    )
    scheduler.attach(host)
    dispatcher = CommandDispatcher(root_dir, engine, toggler, notifier)
    return App(
        root_dir=root_dir,
        layout=layout,
        host=host,
        engine=engine,
        store=store,
        toggler=toggler,
        scheduler=scheduler,
        hub=hub,
        notifier=notifier,
        dispatcher=dispatcher,
    )


async def shutdown(app: App) -> None:
    """Fire host shutdown (flushes pending toggles), then wait for the delayed pass."""
    await app.host.shutdown()
    report = await app.scheduler.wait()
    if report is not None and report.unresolved:
        logger.warning("Pending toggles lost on exit: %s", ", ".join(report.unresolved))


async def main_async() -> None:
    """Bootstrap: settings -> logging -> load modules -> serve -> shutdown flush."""
    settings = load_settings()
    setup_logging(_PROJECT_ROOT, settings)
    app = build_app(settings)
    app.host.load_active(app.layout)

    web = create_app(
        app.hub,
        app.dispatcher,
        path=get_setting(settings, "server.path", "/modtoggler"),
    )
    host = get_setting(settings, "server.host", "127.0.0.1")
    port = int(get_setting(settings, "server.port", 9977))
    server = uvicorn.Server(uvicorn.Config(web, host=host, port=port, log_config=None))
    logger.info("WebSocket server listening on ws://%s:%d", host, port)
    try:
        await server.serve()
    except asyncio.CancelledError:
        pass
    finally:
        await shutdown(app)


def main() -> None:
    """Synchronous entry for the modtoggler process."""
    load_dotenv(_PROJECT_ROOT / ".env")
    try:
        asyncio.run(main_async())
    except KeyboardInterrupt:
        pass


__all__ = ["App", "build_app", "main", "shutdown"]
