"""Authoring API for module archives.

A module archive ships Python sources with at least one concrete class that
extends ModulePlugin (directly or through its own base classes). The optional
@module_info decorator declares the module's display name and version. The
archive is inspected statically, so the decorator arguments must be literals.

    from modtoggler.sdk import ModulePlugin, module_info

    @module_info("Alpha Tweaks", "1.2.0")
    class AlphaTweaks(ModulePlugin):
        ...
"""

from typing import Callable, TypeVar

MARKER_NAME = "ModulePlugin"
IDENTITY_DECORATOR = "module_info"

_T = TypeVar("_T", bound=type)


class ModulePlugin:
    """Marker base class every module implementation must reach."""

    module_name: str | None = None
    module_version: str | None = None


def module_info(name: str, version: str | None = None) -> Callable[[_T], _T]:
    """Attach display name and version to a ModulePlugin subclass."""

    def decorate(cls: _T) -> _T:
        cls.module_name = name
        cls.module_version = version
        return cls

    return decorate
