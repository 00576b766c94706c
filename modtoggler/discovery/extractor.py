"""MetadataExtractor: decide whether an archive is a module and read its identity.

Pipeline per file:
  1. cheap pre-filter on the identity header (active files only): deny-listed
     internal names are rejected without parsing any code;
  2. full introspection: the archive must declare a concrete class reaching the
     marker base, otherwise the file is excluded;
  3. attribute extraction on the first qualifying class;
  4. download link from header metadata keys, then from the description.

Inactive files are introspected through a temporary copy without the disabled
suffix, removed on every exit path.
"""

import logging
import re
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterable, Iterator

from modtoggler.archive import (
    IdentityHeader,
    TypeInfo,
    find_qualifying_type,
    read_identity,
    read_type_table,
)
from modtoggler.layout import ModuleLayout
from modtoggler.models import UNKNOWN_VERSION, ModuleRecord
from modtoggler.sdk import MARKER_NAME

logger = logging.getLogger(__name__)

DEFAULT_DENY_LIST: tuple[str, ...] = (
    "modtoggler",
    "python3",
    "stdlib",
    "setuptools",
    "pkg_resources",
    "typing_extensions",
    "pydantic",
    "pyyaml",
    "fastapi",
    "starlette",
    "uvicorn",
)

LINK_KEY_FRAGMENTS: tuple[str, ...] = ("url", "link", "homepage", "repository")

_URL_RE = re.compile(r"https?://\S+")


def find_download_link(header: IdentityHeader) -> str | None:
    """First metadata value whose key looks like a link, else first URL in the description."""
    for key, value in header.metadata.items():
        lowered = key.lower()
        if any(fragment in lowered for fragment in LINK_KEY_FRAGMENTS):
            return value
    match = _URL_RE.search(header.description or "")
    return match.group(0) if match else None


class MetadataExtractor:
    """Classifies module archives into ModuleRecords."""

    def __init__(
        self,
        layout: ModuleLayout,
        deny_list: Iterable[str] = DEFAULT_DENY_LIST,
        marker: str = MARKER_NAME,
    ) -> None:
        self._layout = layout
        self._deny_list = tuple(f.lower() for f in deny_list if f)
        self._marker = marker

    @property
    def layout(self) -> ModuleLayout:
        return self._layout

    def is_denied(self, internal_name: str) -> bool:
        lowered = internal_name.lower()
        return any(fragment in lowered for fragment in self._deny_list)

    def classify(
        self, path: Path, loaded: bool = False, key: str | None = None
    ) -> ModuleRecord | None:
        """ModuleRecord for a genuine module, None when the file is not one.

        key defaults to the path relative to the layout's modules directory.
        """
        key = key or self._layout.key_for(path)
        active = not self._layout.is_inactive(path)
        if active:
            try:
                header = read_identity(path)
            except Exception as e:
                logger.debug("Pre-filter rejected %s: %s", path, e)
                return None
            internal = header.name or self._layout.stem_of(path)
            if self.is_denied(internal):
                logger.debug("Skipping framework library %s (%s)", path, internal)
                return None

        try:
            with self._introspection_target(path) as target:
                try:
                    plugin_type = self._introspect(target)
                except Exception as e:
                    logger.debug("Not a module %s: %s", path, e)
                    return None
                if plugin_type is None:
                    logger.debug("No %s implementation in %s", self._marker, path)
                    return None
                header = read_identity(target)
                return self._build_record(path, key, active, loaded, header, plugin_type)
        except Exception as e:
            logger.error("Failed to read module metadata from %s: %s", path, e)
            return self._fallback_record(path, key, active, loaded)

    def _introspect(self, target: Path) -> TypeInfo | None:
        return find_qualifying_type(read_type_table(target), self._marker)

    @contextmanager
    def _introspection_target(self, path: Path) -> Iterator[Path]:
        """Yield a path that can be introspected: the file itself, or a temp copy without suffix.

        An already existing unsuffixed file is used as is and never deleted.
        """
        if not self._layout.is_inactive(path):
            yield path
            return
        target = self._layout.strip_disabled(path)
        if target.exists():
            yield target
            return
        # target did not exist before this point, so whatever is there now is ours,
        # including a partial copy left by a failed copyfile
        try:
            shutil.copyfile(path, target)
            yield target
        finally:
            try:
                target.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Could not remove temporary copy %s: %s", target, e)

    def _build_record(
        self,
        path: Path,
        key: str,
        active: bool,
        loaded: bool,
        header: IdentityHeader,
        plugin_type: TypeInfo,
    ) -> ModuleRecord:
        internal = header.name or self._layout.stem_of(path)
        identity = plugin_type.identity
        name = (identity.name if identity else None) or internal
        version = (identity.version if identity else None) or header.version or UNKNOWN_VERSION
        return ModuleRecord(
            key=key,
            name=name,
            active=active,
            loaded=loaded,
            version=version,
            download_link=find_download_link(header),
            internal_name=internal,
        )

    def _fallback_record(self, path: Path, key: str, active: bool, loaded: bool) -> ModuleRecord:
        stem = self._layout.stem_of(path)
        return ModuleRecord(
            key=key,
            name=stem,
            active=active,
            loaded=loaded,
            version=UNKNOWN_VERSION,
            download_link=None,
            internal_name=stem,
        )
